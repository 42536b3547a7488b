"""Sample data generators."""

from mill_credit.generators.customer import CustomerGenerator

__all__ = ["CustomerGenerator"]
