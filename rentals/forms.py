from decimal import Decimal

from django import forms

from .models import RentalMedia

# ---------------------------------------------------------------------------
# Manual price override
# ---------------------------------------------------------------------------

class PriceOverrideForm(forms.Form):
    new_price = forms.DecimalField(label="New total price", max_digits=10, decimal_places=2)
    reason = forms.CharField(label="Reason", max_length=255, required=False)

    def clean_new_price(self):
        price = self.cleaned_data["new_price"]
        if price is None or price <= 0:
            raise forms.ValidationError("Please enter a valid price amount.")
        return price


# ---------------------------------------------------------------------------
# Odometer / payments
# ---------------------------------------------------------------------------

class OdometerForm(forms.Form):
    reading = forms.IntegerField(label="Odometer (km)", min_value=0)


class PaymentForm(forms.Form):
    amount = forms.DecimalField(label="Amount received", max_digits=10, decimal_places=2, min_value=Decimal("0.01"))


class CancelRentalForm(forms.Form):
    confirm = forms.BooleanField(label="I confirm the cancellation", required=False)


# ---------------------------------------------------------------------------
# Extensions / media / contract
# ---------------------------------------------------------------------------

class ExtensionRequestForm(forms.Form):
    hours = forms.IntegerField(label="Extra hours", min_value=1, max_value=24 * 30)
    notes = forms.CharField(label="Notes", required=False, widget=forms.Textarea(attrs={"rows": 2}))


class MediaForm(forms.Form):
    phase = forms.ChoiceField(choices=RentalMedia.Phase.choices)
    file_url = forms.URLField(max_length=500)


class SignatureForm(forms.Form):
    signature_url = forms.URLField(max_length=500)


class DepositReturnForm(forms.Form):
    deduct_balance = forms.BooleanField(label="Deduct unpaid balance from deposit", required=False)
    signature_url = forms.URLField(max_length=500, required=False)
