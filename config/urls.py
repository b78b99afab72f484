# config/urls.py
from django.contrib import admin
from django.urls import path, include
from django.views.generic import RedirectView
from django.conf import settings
from django.conf.urls.static import static

urlpatterns = [
    path("admin/", admin.site.urls),

    # App routes (namespace 'rentals')
    path("rentals/", include(("rentals.urls", "rentals"), namespace="rentals")),

    # Home → rental list
    path("", RedirectView.as_view(pattern_name="rentals:rentals_list", permanent=False)),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
