DATA_DIR = "data"
DB_FILE_NAME = "phone_pos.db"

TABLE_DOCUMENTS = "documents"
TABLE_SCHEMA_VERSION = "schema_version"
SCHEMA_VERSION = "1"

# ---- store collections ----
COL_ORDER_NUMBERS = "OrderNumbers"
COL_DATA = "Data"
DOC_SCANNER = "scanner"
COL_IMEI = "IMEI"
COL_BRANDS = "PhoneBrands"
COL_MODELS = "Models"
COL_PHONES = "Phones"
COL_COLORS = "Colors"
COL_CARRIERS = "Carriers"
COL_STORAGE_LOCATIONS = "StorageLocations"
COL_CUSTOMERS = "Customers"
COL_SUPPLIERS = "Suppliers"
COL_MIDDLEMEN = "Middlemen"
COL_SALES = "Sales"
COL_BALANCES = "Balances"

# singleton balance accounts (document ids under Balances/)
ACCOUNT_CASH = "cash"
ACCOUNT_BANK = "bank"
ACCOUNT_CARD = "creditCard"
BALANCE_ACCOUNTS = (ACCOUNT_CASH, ACCOUNT_BANK, ACCOUNT_CARD)

# ---- order numbers ----
ORDER_PREFIX = "SO-"
ORDER_LOADING = "Loading..."

UNKNOWN_FIELD = "Unknown"
