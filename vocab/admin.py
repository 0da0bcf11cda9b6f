from django.contrib import admin
from .models import Deck, Card, CardStats, ReviewLog, UserPreferences
from . import srs


class CardInline(admin.TabularInline):
    model = Card
    extra = 1
    fields = ['card_key', 'front', 'back', 'hsk', 'starred', 'ignored']


@admin.register(Deck)
class DeckAdmin(admin.ModelAdmin):
    list_display = ['name', 'owner', 'card_count', 'created_at']
    list_filter = ['owner', 'created_at']
    search_fields = ['name', 'description']
    inlines = [CardInline]

    def card_count(self, obj):
        return obj.cards.count()
    card_count.short_description = 'Cards'


@admin.register(Card)
class CardAdmin(admin.ModelAdmin):
    list_display = ['card_key', 'front_preview', 'deck', 'hsk', 'starred', 'ignored']
    list_filter = ['deck', 'hsk', 'starred', 'ignored']
    search_fields = ['card_key', 'front', 'back', 'pinyin']

    def front_preview(self, obj):
        return obj.front[:50] + '...' if len(obj.front) > 50 else obj.front
    front_preview.short_description = 'Front'


@admin.register(CardStats)
class CardStatsAdmin(admin.ModelAdmin):
    list_display = ['card', 'mode', 'total_correct', 'total_incorrect',
                    'correct_streak_len', 'incorrect_streak_len', 'last_review', 'interval_hours']
    list_filter = ['mode']
    search_fields = ['card__card_key', 'card__front']
    readonly_fields = ['total_correct', 'total_incorrect', 'last_correct_at', 'last_incorrect_at',
                       'correct_streak_len', 'incorrect_streak_len',
                       'correct_streak_started_at', 'incorrect_streak_started_at']

    def last_review(self, obj):
        last_review_at = obj.record.last_review_at
        return srs.from_epoch_ms(last_review_at) if last_review_at else None
    last_review.short_description = 'Last review'

    def interval_hours(self, obj):
        return round(srs.recommended_interval_hours(obj.record), 2)
    interval_hours.short_description = 'Interval (h)'


@admin.register(ReviewLog)
class ReviewLogAdmin(admin.ModelAdmin):
    list_display = ['card', 'mode', 'correct', 'interval_before', 'interval_after', 'reviewed_at']
    list_filter = ['mode', 'correct', 'reviewed_at']
    readonly_fields = ['card', 'mode', 'correct', 'interval_before', 'interval_after', 'reviewed_at']


@admin.register(UserPreferences)
class UserPreferencesAdmin(admin.ModelAdmin):
    list_display = ['user', 'learning_mode', 'theme', 'updated_at']
    list_filter = ['theme', 'learning_mode']
