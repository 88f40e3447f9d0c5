import pytest
from pydantic import ValidationError as PydanticValidationError

from app.domain.errors import ValidationError
from app.domain.owner import SessionOwner, UserOwner, owner_from_ids
from app.domain.schemas import CheckoutIn
from app.domain.statuses import PaymentMethod
from tests.conftest import checkout_payload


class TestOwner:
    def test_user(self):
        assert owner_from_ids(5, None) == UserOwner(5)

    def test_session(self):
        assert owner_from_ids(None, "abc") == SessionOwner("abc")

    def test_both_rejected(self):
        with pytest.raises(ValidationError):
            owner_from_ids(5, "abc")

    def test_neither_rejected(self):
        with pytest.raises(ValidationError):
            owner_from_ids(None, "")


class TestCheckoutIn:
    def test_same_as_billing_copies_address(self):
        payload = CheckoutIn(**checkout_payload())

        fields = payload.address_fields()
        assert fields["shipping_first_name"] == "Ada"
        assert fields["shipping_address"] == "12 Marina Road"
        assert fields["shipping_postal_code"] == "100001"
        assert fields["billing_country"] == "Nigeria"
        assert fields["shipping_country"] == "Nigeria"
        assert payload.payment_method == PaymentMethod.PAYSTACK

    def test_explicit_shipping_address(self):
        payload = CheckoutIn(
            **checkout_payload(
                same_as_billing=False,
                shipping_first_name="Tunde",
                shipping_last_name="Obi",
                shipping_phone="+2348099999999",
                shipping_address="4 Allen Avenue",
                shipping_city="Ikeja",
                shipping_state="Lagos",
            )
        )

        assert payload.shipping_city == "Ikeja"
        assert payload.billing_city == "Lagos"

    def test_shipping_required_without_flag(self):
        with pytest.raises(PydanticValidationError):
            CheckoutIn(**checkout_payload(same_as_billing=False))

    def test_invalid_email(self):
        with pytest.raises(PydanticValidationError):
            CheckoutIn(**checkout_payload(billing_email="not-an-email"))

    def test_unknown_payment_method(self):
        with pytest.raises(PydanticValidationError):
            CheckoutIn(**checkout_payload(payment_method="cash"))

    def test_unknown_shipping_method(self):
        with pytest.raises(PydanticValidationError):
            CheckoutIn(**checkout_payload(shipping_method="drone"))
