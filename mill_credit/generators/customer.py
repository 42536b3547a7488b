"""Customer generator for the mill's credit customers."""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterator

from mill_credit.generators.base import BaseGenerator
from mill_credit.models.base import Address
from mill_credit.models.credit import (
    BusinessType,
    CreditInfo,
    Customer,
    CustomerType,
    PaymentMethod,
    PaymentTerms,
)

CITIES = [
    ("Lahore", "Punjab"),
    ("Faisalabad", "Punjab"),
    ("Multan", "Punjab"),
    ("Karachi", "Sindh"),
    ("Hyderabad", "Sindh"),
    ("Peshawar", "Khyber Pakhtunkhwa"),
    ("Islamabad", "Islamabad Capital Territory"),
    ("Quetta", "Balochistan"),
]


class CustomerGenerator(BaseGenerator):
    """Generate sample mill customers with credit lines."""

    BUSINESS_TYPES = list(BusinessType)
    BUSINESS_WEIGHTS = [0.25, 0.25, 0.15, 0.08, 0.12, 0.10, 0.05]

    # Credit limit ranges by business type (PKR)
    CREDIT_LIMITS = {
        BusinessType.INDIVIDUAL: (0, 50_000),
        BusinessType.RETAILER: (50_000, 300_000),
        BusinessType.WHOLESALER: (200_000, 1_500_000),
        BusinessType.RESTAURANT: (25_000, 200_000),
        BusinessType.BAKERY: (50_000, 400_000),
        BusinessType.DISTRIBUTOR: (500_000, 3_000_000),
        BusinessType.OTHER: (0, 100_000),
    }

    CREDIT_TERMS = {
        PaymentTerms.CASH: 0,
        PaymentTerms.COD: 0,
        PaymentTerms.NET_15: 15,
        PaymentTerms.NET_30: 30,
        PaymentTerms.NET_60: 60,
    }

    def __init__(
        self,
        seed: int | None = None,
        locale: str = "en_US",
        default_credit_terms: int = 30,
    ) -> None:
        super().__init__(seed, locale)
        self.default_credit_terms = default_credit_terms

    def generate(self) -> Customer:
        """Generate a single customer.

        Returns
        -------
        Customer
            Generated customer, without a customer number.
        """
        return self._generate_one()

    def generate_batch(self, count: int) -> Iterator[Customer]:
        """Generate multiple customers.

        Parameters
        ----------
        count : int
            Number of customers to generate.

        Yields
        ------
        Customer
            Generated customers.
        """
        for _ in range(count):
            yield self._generate_one()

    def _generate_one(self) -> Customer:
        """Generate a single customer."""
        business_type = self.rng.choices(
            self.BUSINESS_TYPES, weights=self.BUSINESS_WEIGHTS, k=1
        )[0]

        low, high = self.CREDIT_LIMITS[business_type]
        # Whole thousands
        credit_limit = Decimal(self.rng.randint(low, high) // 1000 * 1000)
        payment_terms = (
            PaymentTerms.CASH
            if credit_limit == 0
            else self.rng.choice([PaymentTerms.CREDIT, PaymentTerms.NET_15, PaymentTerms.NET_30])
        )
        # Some headroom already used
        current_balance = (credit_limit * Decimal(self.rng.randint(0, 60)) / 100).quantize(
            Decimal("1")
        )

        first_name = self.fake.first_name()
        last_name = self.fake.last_name()
        days_ago = self.rng.randint(0, 3 * 365)

        return Customer(
            first_name=first_name,
            last_name=last_name,
            email=self.fake.unique.free_email(),
            phone=self.fake.numerify("03##-#######"),
            national_id=self.fake.unique.numerify("#####-#######-#"),
            address=self._generate_address(),
            business_name=(
                "" if business_type == BusinessType.INDIVIDUAL
                else f"{last_name} {business_type.value}"
            ),
            business_type=business_type,
            customer_type=self.rng.choice(list(CustomerType)),
            payment_terms=payment_terms,
            preferred_payment_method=self.rng.choice(
                [PaymentMethod.CASH, PaymentMethod.BANK_TRANSFER, PaymentMethod.CHEQUE]
            ),
            credit=CreditInfo(
                credit_limit=credit_limit,
                current_balance=current_balance,
                credit_terms=self.CREDIT_TERMS.get(payment_terms, self.default_credit_terms),
            ),
            created_at=datetime.now() - timedelta(days=days_ago),
        )

    def _generate_address(self) -> Address:
        city, state = self.rng.choice(CITIES)
        return Address(
            street=self.fake.street_address(),
            city=city,
            state=state,
            zip_code=self.fake.numerify("#####"),
        )
