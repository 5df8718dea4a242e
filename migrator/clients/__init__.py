# migrator/clients/__init__.py
