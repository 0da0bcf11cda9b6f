from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('admin/', admin.site.urls),
    path('', include('vocab.urls')),
]

handler404 = 'vocab.views.errors.not_found'
handler500 = 'vocab.views.errors.server_error'
