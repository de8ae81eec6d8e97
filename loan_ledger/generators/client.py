"""Client generator."""

from __future__ import annotations

import random
from datetime import datetime, timedelta
from typing import Iterator

from loan_ledger.generators.base import BaseGenerator
from loan_ledger.models import Client


class ClientGenerator(BaseGenerator):
    """Generate synthetic borrowers with Brazilian contact data."""

    NOTES = [
        None,
        None,
        None,
        "Indicado por outro cliente",
        "Prefere contato pelo WhatsApp",
        "Comerciante da feira",
    ]

    def generate(self) -> Client:
        """Generate a single client.

        Returns
        -------
        Client
            Generated client.
        """
        return Client(
            client_id=self.fake.uuid4(),
            name=self.fake.name(),
            email=self.fake.email(),
            phone=self.fake.cellphone_number(),
            cpf=self.fake.cpf(),
            address=self.fake.street_address(),
            city=self.fake.city(),
            state=self.fake.estado_sigla(),
            zip_code=self.fake.postcode(),
            notes=random.choice(self.NOTES),
            created_at=datetime.now() - timedelta(days=random.randint(0, 365)),
        )

    def generate_batch(self, count: int) -> Iterator[Client]:
        for _ in range(count):
            yield self.generate()
