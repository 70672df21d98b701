"""Post-provision reconciliation of Entra ID, Azure RBAC and Dataverse for azd environments."""

__version__ = "0.1.0"
