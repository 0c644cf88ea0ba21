"""azsync: timestamp-driven synchronisation of dotenv secrets and files with Azure."""

__version__ = "0.3.0"
