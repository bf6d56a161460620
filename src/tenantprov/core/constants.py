# src/tenantprov/core/constants.py
# Fixed identifiers the provisioning run depends on.

GRAPH = "https://graph.microsoft.com"
LOGIN = "https://login.microsoftonline.com"

# Office 365 Exchange Online (well-known first-party app)
EXCHANGE_APP_ID = "00000002-0000-0ff1-ce00-000000000000"
EXCHANGE_DISPLAY_NAME = "Office 365 Exchange Online"

EWS_SCOPE_VALUE = "EWS.AccessAsUser.All"      # delegated
FULL_ACCESS_ROLE_VALUE = "full_access_as_app"  # application

APP_DISPLAY_NAME = "MigrationWiz"
SECRET_LABEL = "MigrationWiz secret"
SECRET_VALIDITY_YEARS = 1

# Microsoft Graph PowerShell public client (what Connect-MgGraph signs in with)
PUBLIC_CLIENT_ID = "14d82eec-204b-4c2f-b7e8-296a70dab67e"

AUTH_SCOPES = [
    "Application.ReadWrite.All",
    "AppRoleAssignment.ReadWrite.All",
    "DelegatedPermissionGrant.ReadWrite.All",
    "Directory.Read.All",
]

CONSENT_ALL_PRINCIPALS = "AllPrincipals"
