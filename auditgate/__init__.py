"""auditgate — audit decision layer with role whitelists.

Decides, per authentication attempt and per statement, whether an audit entry
is emitted, and lets administrators exempt roles from auditing on chosen
resources through custom role options.

Entry point:

    from auditgate.config import load_config
    from auditgate.factory import create_audit_layer

    layer = await create_audit_layer(load_config())
"""

__version__ = "0.1.0"
