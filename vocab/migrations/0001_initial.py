from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Deck',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='decks', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['name'],
                'unique_together': {('name', 'owner')},
            },
        ),
        migrations.CreateModel(
            name='Card',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('card_key', models.CharField(help_text='Stable identifier from the deck source', max_length=100)),
                ('front', models.TextField(help_text='Prompt, e.g. the hanzi')),
                ('back', models.TextField(blank=True, help_text='Answer, e.g. the English meaning')),
                ('pinyin', models.CharField(blank=True, max_length=200)),
                ('notes', models.TextField(blank=True, help_text='Additional notes or hints')),
                ('tags', models.JSONField(blank=True, default=list)),
                ('hsk', models.CharField(blank=True, max_length=20)),
                ('starred', models.BooleanField(default=False)),
                ('ignored', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('deck', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='cards', to='vocab.deck')),
            ],
            options={
                'ordering': ['id'],
                'unique_together': {('deck', 'card_key')},
            },
        ),
        migrations.CreateModel(
            name='CardStats',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('mode', models.CharField(max_length=50)),
                ('total_correct', models.PositiveIntegerField(default=0)),
                ('total_incorrect', models.PositiveIntegerField(default=0)),
                ('last_correct_at', models.BigIntegerField(blank=True, null=True)),
                ('last_incorrect_at', models.BigIntegerField(blank=True, null=True)),
                ('correct_streak_len', models.PositiveIntegerField(default=0)),
                ('incorrect_streak_len', models.PositiveIntegerField(default=0)),
                ('correct_streak_started_at', models.BigIntegerField(blank=True, null=True)),
                ('incorrect_streak_started_at', models.BigIntegerField(blank=True, null=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('card', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='stats', to='vocab.card')),
            ],
            options={
                'verbose_name_plural': 'Card stats',
                'unique_together': {('card', 'mode')},
            },
        ),
        migrations.CreateModel(
            name='ReviewLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('mode', models.CharField(max_length=50)),
                ('correct', models.BooleanField()),
                ('interval_before', models.FloatField(help_text='Recommended interval in hours before the answer')),
                ('interval_after', models.FloatField(help_text='Recommended interval in hours after the answer')),
                ('reviewed_at', models.DateTimeField(auto_now_add=True)),
                ('card', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='review_logs', to='vocab.card')),
            ],
            options={
                'ordering': ['-reviewed_at'],
            },
        ),
        migrations.CreateModel(
            name='UserPreferences',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('learning_mode', models.CharField(blank=True, max_length=50)),
                ('theme', models.CharField(choices=[('light', 'Light'), ('dark', 'Dark'), ('system', 'System')], default='light', max_length=10)),
                ('saved_filters', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('selected_deck', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='vocab.deck')),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='preferences', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name_plural': 'User preferences',
            },
        ),
    ]
