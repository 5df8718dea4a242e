# migrator/utils/__init__.py
