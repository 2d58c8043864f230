# QuarterDash - Quarterly financial indicators dashboard
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Dashboard session state.

A session tracks which company is selected and holds the records loaded for
it. Loading is split in two steps so that slow loads cannot overwrite fresher
state:

1) ``select_company()`` issues a LoadTicket carrying a new generation token.
2) ``apply_records()`` installs the fetched records only if the ticket is
   still the latest one issued. Results of superseded loads are dropped.

Records are always replaced as a whole, never merged.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from .comparison import sort_records_desc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadTicket:
    """Identifies one load request for a company's records."""

    token: int
    company_id: int


@dataclass
class DashboardSession:
    """Selected company and its records, guarded by a generation counter."""

    companies: list[Any] = field(default_factory=list)
    selected_company_id: Optional[int] = None
    records: list[Any] = field(default_factory=list)
    generation: int = 0

    def set_companies(self, companies: Sequence[Any]) -> Optional[int]:
        """
        Replace the company list.

        When no company is selected yet (or the selected one disappeared),
        the first company of the list becomes the default selection and its
        id is returned so the caller can start loading it. Returns None when
        the selection is unchanged.
        """
        self.companies = list(companies)
        ids = {c.id for c in self.companies}
        if self.selected_company_id in ids:
            return None
        if not self.companies:
            self.selected_company_id = None
            self.records = []
            return None
        return self.companies[0].id

    def select_company(self, company_id: int) -> LoadTicket:
        """Select a company and issue the ticket for loading its records."""
        self.generation += 1
        self.selected_company_id = company_id
        ticket = LoadTicket(token=self.generation, company_id=company_id)
        logger.debug("Issued load ticket %s for company #%s", ticket.token, company_id)
        return ticket

    def is_current(self, ticket: LoadTicket) -> bool:
        return ticket.token == self.generation

    def apply_records(self, ticket: LoadTicket, records: Sequence[Any]) -> bool:
        """
        Install `records` if `ticket` is the latest ticket issued.

        Returns
        -------
        bool
            True if the records were applied, False if the ticket was stale.
        """
        if not self.is_current(ticket):
            logger.debug(
                "Dropping stale records for company #%s (ticket %s, latest %s)",
                ticket.company_id,
                ticket.token,
                self.generation,
            )
            return False
        self.records = sort_records_desc(records)
        return True

    def load(self, company_id: int, fetch: Callable[[int], Sequence[Any]]) -> bool:
        """Select `company_id`, fetch its records and apply them."""
        ticket = self.select_company(company_id)
        return self.apply_records(ticket, fetch(company_id))

    @property
    def selected_company(self) -> Optional[Any]:
        for company in self.companies:
            if company.id == self.selected_company_id:
                return company
        return None

    @property
    def current_record(self) -> Optional[Any]:
        """Most recent record of the selected company, or None."""
        return self.records[0] if self.records else None
