"""
Base settings for fulfillment_hub project.
Shared between local and cloud deployments.
"""

from pathlib import Path
import os

from django.urls import reverse_lazy

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv('SECRET_KEY', 'django-insecure-q2v!7r0e$wz3k^b_h8m4)fulfil+l1n9x@c6t#p5s&yd0u=aj')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv('DEBUG', 'True').lower() == 'true'

ALLOWED_HOSTS = os.getenv('ALLOWED_HOSTS', '*').split(',')


# Application definition
INSTALLED_APPS = [
    "unfold",
    "unfold.contrib.filters",
    "unfold.contrib.forms",
    "unfold.contrib.inlines",
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'stock',
    'orders',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'fulfillment_hub.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'fulfillment_hub.wsgi.application'


# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]


# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.getenv('TIME_ZONE', 'UTC')
USE_I18N = True
USE_TZ = True


# Static files
STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'


# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# =============================================================================
# FULFILLMENT ENGINE
# =============================================================================
FULFILLMENT = {
    # How many times a line's allocation is recomputed after losing a lot to a concurrent reservation
    'ALLOCATION_RETRY_ATTEMPTS': int(os.getenv('FULFILLMENT_ALLOCATION_RETRIES', '3')),
}


# Unfold Admin Configuration
UNFOLD = {
    "SITE_TITLE": "Fulfillment Hub Admin",
    "SITE_HEADER": "Fulfillment Hub",
    "SITE_URL": "/",
    "SITE_SYMBOL": "local_shipping",

    "SIDEBAR": {
        "show_search": True,
        "show_all_applications": True,
        "navigation": [
            {
                "title": "Dashboard",
                "separator": False,
                "items": [
                    {
                        "title": "Dashboard",
                        "icon": "dashboard",
                        "link": reverse_lazy("admin:index"),
                    },
                ],
            },
            {
                "title": "Wholesale",
                "separator": True,
                "items": [
                    {
                        "title": "Orders",
                        "icon": "shopping_cart",
                        "link": reverse_lazy("admin:orders_order_changelist"),
                    },
                    {
                        "title": "Retailers",
                        "icon": "storefront",
                        "link": reverse_lazy("admin:orders_retailer_changelist"),
                    },
                    {
                        "title": "Activity Log",
                        "icon": "receipt_long",
                        "link": reverse_lazy("admin:orders_activitylog_changelist"),
                    },
                ],
            },
            {
                "title": "Inventory",
                "separator": True,
                "items": [
                    {
                        "title": "Stock Lots",
                        "icon": "inventory_2",
                        "link": reverse_lazy("admin:stock_stocklot_changelist"),
                    },
                    {
                        "title": "Products",
                        "icon": "category",
                        "link": reverse_lazy("admin:stock_product_changelist"),
                    },
                    {
                        "title": "Raw Materials",
                        "icon": "science",
                        "link": reverse_lazy("admin:stock_rawmaterial_changelist"),
                    },
                ],
            },
            {
                "title": "Production & Purchasing",
                "separator": True,
                "items": [
                    {
                        "title": "Manufacturing Orders",
                        "icon": "precision_manufacturing",
                        "link": reverse_lazy("admin:stock_manufacturingorder_changelist"),
                    },
                    {
                        "title": "Purchase Orders",
                        "icon": "local_shipping",
                        "link": reverse_lazy("admin:stock_purchaseorder_changelist"),
                    },
                    {
                        "title": "Vendors",
                        "icon": "business",
                        "link": reverse_lazy("admin:stock_vendor_changelist"),
                    },
                ],
            },
        ],
    },
}
