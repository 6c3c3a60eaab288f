"""Configuration constants for the third-party store locator providers.

Each provider section lists the public endpoints its widget calls and the
defaults the widget itself falls back to when the embedding page leaves a
setting out. None of these values are secrets: tokens and customer IDs are
read from the brand's own page at run time.
"""

# Locally.com
LOCALLY_STORES_URL = "https://api.locally.com/stores/json"
LOCALLY_TAKE = 10000

# Storemapper
STOREMAPPER_STORES_URL = "https://storemapper.co/api/stores"

# Stockist
STOCKIST_API_BASE = "https://stockist.co/api/v1"
STOCKIST_DEFAULT_LATITUDE = 39.828175
STOCKIST_DEFAULT_LONGITUDE = -98.5795
STOCKIST_DEFAULT_DISTANCE = 50000
STOCKIST_PER_PAGE = 10000

# Storepoint
STOREPOINT_LOCATIONS_URL = "https://api.storepoint.co/v2/{widget_id}/locations"

# Roseperl / Secomapp (Shopify)
ROSEPERL_WTB_VARIABLE = "SCASLWtb"

# VTInfo (beverage distributor finder)
VTINFO_IFRAME_URL = "https://finder.vtinfo.com/finder/web/v2/iframe"
VTINFO_SEARCH_URL = "https://finder.vtinfo.com/finder/web/v2/iframe/search"
VTINFO_DEFAULT_PAGE_SIZE = "50"
VTINFO_DEFAULT_ON_PREM = "Restaurants and Bars"
VTINFO_DEFAULT_OFF_PREM = "Retail Stores"
VTINFO_SEARCH_RADIUS_MILES = "100"
VTINFO_THEME_VERSION = "3"
# ZIP code the finder form expects alongside each strategic search origin.
# Origins without an entry are not swept.
VTINFO_ZIP_BY_LABEL = {
    "Minneapolis": "55401",
    "Kansas": "67202",
    "Los Angeles": "90001",
    "New York": "10001",
    "Chicago": "60601",
    "Houston": "77001",
    "Denver": "80202",
    "Phoenix": "85001",
}
VTINFO_RATE_LIMIT_MARKERS = (
    "429 too many requests",
    "you have sent too many requests",
    "rate limit",
)

# AskHoodie (cannabis/hemp where-to-buy)
ASKHOODIE_SEARCH_URL = "https://www.askhoodie.com/api/search"
ASKHOODIE_INDEX_NAME = "all_PRODUCTS_V2"
ASKHOODIE_AROUND_RADIUS_METERS = 2500000
ASKHOODIE_HITS_PER_PAGE = 1000
ASKHOODIE_CENTERS = (
    (39.8283, -98.5795),
    (44.9778, -93.2650),
    (34.0522, -118.2437),
    (40.7128, -74.0060),
    (29.7604, -95.3698),
)
ASKHOODIE_ATTRIBUTES = [
    "MASTER_D_ID", "MASTER_D_NAME", "MASTER_D_ADDRESS", "MASTER_D_CITY",
    "MASTER_D_STATE", "MASTER_D_ZIP", "MASTER_D_COUNTRY", "MASTER_D_PHONE",
    "DISPENSARY_NAME", "FULL_ADDRESS", "D_CITY", "D_STATE", "D_ZIP",
    "D_COUNTRY", "PHONE", "_geoloc",
]

# BeverageFinder
BEVERAGEFINDER_MAP_URL = "https://beveragefinder.net/users/beveragefinder-map.php"
BEVERAGEFINDER_SEARCH_URL = "https://beveragefinder.net/users/embed-search.php"
BEVERAGEFINDER_DEFAULT_ZIP = "10001"
BEVERAGEFINDER_SEARCH_MILES = "100"

# Destini / lets.shop
DESTINI_BOOTSTRAP_URL = "https://lets.shop/locators/{alpha_code}/{locator_id}/{locator_id}.json"
DESTINI_DEFAULT_KNOX_URL = "https://hlc7l6v5w6.execute-api.us-west-2.amazonaws.com/prod/"
DESTINI_DEFAULT_DISTANCE_MILES = 100
DESTINI_DEFAULT_MAX_STORES = 100
DESTINI_DEFAULT_TEXT_STYLE_BM = "RESPECTCASINGPASSED"
DESTINI_SCRIPT_MARKERS = ("/_nuxt/", "locator", "where-to-buy", "lets.shop")

# StoreRocket
STOREROCKET_LOCATIONS_URL = "https://storerocket.io/api/user/{account}/locations"
STOREROCKET_SCRIPT_MARKERS = ("storerocket", "store-locator", "locator")

# Agile Store Locator (WordPress plugin)
AGILE_ACTION = "asl_load_stores"
AGILE_RETRY_DELAYS_MS = (0, 300, 900)

# JSON-LD: schema.org types that describe a physical point of sale
JSONLD_LOCATION_TYPES = frozenset({
    "localbusiness",
    "store",
    "foodestablishment",
    "grocerystore",
    "conveniencestore",
    "drinkingestablishment",
    "barorpub",
    "brewery",
})
