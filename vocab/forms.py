from django import forms

from .models import UserPreferences
from . import conf


def _split_list(data, name):
    """
    Read a list value from form data.

    Accepts a JSON list, repeated query parameters or comma-separated
    strings, and returns the non-empty parts.
    """
    if hasattr(data, 'getlist'):
        raw = data.getlist(name)
    else:
        raw = data.get(name) or []
    if isinstance(raw, str):
        raw = [raw]
    return [part.strip() for value in raw for part in str(value).split(',') if part.strip()]


class ReviewFilterForm(forms.Form):
    """Query parameters shared by the next-card, progress and stats endpoints."""
    mode = forms.CharField(required=False, max_length=50)
    starred = forms.BooleanField(required=False)
    ignored = forms.BooleanField(required=False)
    tags = forms.CharField(required=False)
    hsk = forms.CharField(required=False)

    def clean_tags(self):
        return _split_list(self.data, 'tags')

    def clean_hsk(self):
        return _split_list(self.data, 'hsk')


class AnswerForm(forms.Form):
    """Body of an answer submission."""
    mode = forms.CharField(max_length=50)
    correct = forms.NullBooleanField()

    def clean_mode(self):
        mode = self.cleaned_data['mode']
        if not conf.is_valid_mode(mode):
            raise forms.ValidationError(f"Unknown learning mode: {mode}")
        return mode

    def clean_correct(self):
        correct = self.cleaned_data.get('correct')
        if correct is None:
            raise forms.ValidationError("'correct' must be true or false")
        return correct


class CardFlagsForm(forms.Form):
    """Starred and ignored flags; omitted flags are left unchanged."""
    starred = forms.NullBooleanField()
    ignored = forms.NullBooleanField()

    def clean(self):
        cleaned_data = super().clean()
        if cleaned_data.get('starred') is None and cleaned_data.get('ignored') is None:
            raise forms.ValidationError("Provide 'starred' and/or 'ignored'")
        return cleaned_data


class UserPreferencesForm(forms.ModelForm):
    """Form for user preferences."""
    tags = forms.CharField(required=False)
    hsk = forms.CharField(required=False)

    class Meta:
        model = UserPreferences
        fields = ['learning_mode', 'selected_deck', 'theme']

    def __init__(self, *args, user=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['learning_mode'].required = False
        self.fields['theme'].required = False
        if user is not None:
            self.fields['selected_deck'].queryset = user.decks.all()

    def clean_learning_mode(self):
        mode = self.cleaned_data.get('learning_mode')
        if not mode:
            return self.instance.learning_mode
        if not conf.is_valid_mode(mode):
            raise forms.ValidationError(f"Unknown learning mode: {mode}")
        return mode

    def clean_theme(self):
        return self.cleaned_data.get('theme') or self.instance.theme

    def clean_tags(self):
        return _split_list(self.data, 'tags')

    def clean_hsk(self):
        return _split_list(self.data, 'hsk')
