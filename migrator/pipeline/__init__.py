# migrator/pipeline/__init__.py
