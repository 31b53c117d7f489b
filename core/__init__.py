"""core/ -- Kernel layer: settings, error taxonomy, database engine, mailer.

Layer rule: core/ has no reverse dependencies. It never imports from api/,
auth/, bootstrap/, or contact/.
"""
