from django.urls import path
from . import views

urlpatterns = [
    # Decks
    path('api/decks/', views.deck_list, name='deck_list'),
    path('api/decks/<int:pk>/progress/', views.deck_progress, name='deck_progress'),
    path('api/decks/<int:pk>/stats/', views.deck_stats, name='deck_stats'),
    path('api/decks/<int:pk>/reset/', views.deck_reset, name='deck_reset'),

    # Review
    path('api/decks/<int:deck_pk>/next/', views.next_card, name='next_card'),
    path('api/cards/<int:pk>/answer/', views.answer_card, name='answer_card'),
    path('api/cards/<int:pk>/flags/', views.card_flags, name='card_flags'),

    # Auth
    path('api/auth/login/', views.api_login, name='api_login'),
    path('api/auth/logout/', views.api_logout, name='api_logout'),

    # Settings
    path('api/settings/', views.api_settings, name='api_settings'),

    # Health check
    path('health/', views.health_check, name='health_check'),
]
