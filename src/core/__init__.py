"""Guild craft desk Core: pure lifecycle logic, no DB access"""
__version__ = "0.1.0"
