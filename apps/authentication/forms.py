"""Admin-site forms for accounts."""
from django import forms
from django.contrib.auth.forms import UserChangeForm, UserCreationForm

from apps.core.choices import Role

from .models import DEFAULT_NOTIFICATION_PREFERENCES, User


class AccountCreationForm(UserCreationForm):
    """Every account needs an email and a role; admins get site access."""

    email = forms.EmailField(required=True)
    role = forms.ChoiceField(choices=Role.choices)

    class Meta:
        model = User
        fields = ('username', 'email', 'first_name', 'last_name', 'role', 'department', 'phone')
        field_classes = {'username': forms.CharField}

    def clean_email(self):
        email = self.cleaned_data['email'].strip().lower()
        if User.objects.filter(email__iexact=email).exists():
            raise forms.ValidationError('An account with this email already exists.')
        return email

    def save(self, commit=True):
        user = super().save(commit=False)
        user.is_staff = user.role == Role.ADMIN
        if commit:
            user.save()
        return user


class AccountChangeForm(UserChangeForm):

    class Meta:
        model = User
        fields = '__all__'
        field_classes = {'username': forms.CharField}

    def clean_notification_preferences(self):
        prefs = self.cleaned_data.get('notification_preferences') or {}
        if not isinstance(prefs, dict):
            raise forms.ValidationError('Preferences must be an object of channel flags.')
        unknown = set(prefs) - set(DEFAULT_NOTIFICATION_PREFERENCES)
        if unknown:
            raise forms.ValidationError(f"Unknown channels: {', '.join(sorted(unknown))}")
        return {channel: bool(prefs.get(channel, default))
                for channel, default in DEFAULT_NOTIFICATION_PREFERENCES.items()}
