# migrator/core/__init__.py
