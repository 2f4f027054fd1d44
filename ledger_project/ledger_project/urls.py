from django.contrib import admin
from django.urls import path

# HTTP surface of the ledger core is the Django admin only;
# POS pages call ledger_core.api directly
urlpatterns = [
    path("admin/", admin.site.urls),
]
