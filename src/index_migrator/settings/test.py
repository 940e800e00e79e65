import os

SECRET_KEY = "index-migrator-tests"

INSTALLED_APPS = ["index_migrator"]

DATABASES = {}

ELASTICSEARCH_SERVER = os.environ.get("ELASTICSEARCH_SERVER", "http://localhost:9200")
ELASTICSEARCH_TIMEOUT = int(os.environ.get("ELASTICSEARCH_TIMEOUT", "10"))

USE_TZ = True
