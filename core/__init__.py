"""core/ -- Kernel layer: configuration, database engine, errors, logging.

Layer rule: core/ imports nothing from api/, auth/ or client/.
"""
