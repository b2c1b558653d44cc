"""CI/CD pipeline demo: service, pipeline checks and policy catalogue"""

__version__ = "1.0.0"
