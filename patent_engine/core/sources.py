"""Descriptors for the sources the engine is known to work with."""

from __future__ import annotations

from types import MappingProxyType
from typing import Optional

from patent_engine.core.models import Credentials, LocatorSet, PageKind, SourceDescriptor

PATENTSCOPE_SEARCH_URL = "https://patentscope.wipo.int/search/en/search.jsf"
INPI_LOGIN_URL = "https://busca.inpi.gov.br/pePI/servlet/LoginController?action=login"
INPI_SEARCH_URL = "https://busca.inpi.gov.br/pePI/jsp/patentes/PatenteSearchBasico.jsp"


def patentscope_source(max_pages: int = 5, step_timeout: float = 60.0) -> SourceDescriptor:
    """WIPO PatentScope simple search. No login; results render after scripts run."""
    return SourceDescriptor(
        name="PatentScope",
        search_url=PATENTSCOPE_SEARCH_URL,
        max_pages=max_pages,
        step_timeout=step_timeout,
        settle_delay=4.0,
        fallback_locators=MappingProxyType({
            PageKind.SEARCH: LocatorSet(
                query_field='input[id$="fpSearch:input"]',
                submit_selector='button[id$="fpSearch:buttons"], button[type="submit"]',
            ),
        }),
    )


def inpi_source(
    credentials: Optional[Credentials],
    max_pages: int = 5,
    step_timeout: float = 180.0,
) -> SourceDescriptor:
    """INPI Brazil basic patent search. Login required; the site is slow."""
    return SourceDescriptor(
        name="INPI",
        search_url=INPI_SEARCH_URL,
        requires_auth=True,
        login_url=INPI_LOGIN_URL,
        credentials=credentials,
        max_pages=max_pages,
        step_timeout=step_timeout,
        settle_delay=2.0,
        fallback_locators=MappingProxyType({
            PageKind.LOGIN: LocatorSet(
                login_field='input[name="T_Login"]',
                password_field='input[name="T_Senha"]',
                submit_selector='input[type="submit"]',
            ),
            PageKind.SEARCH: LocatorSet(
                query_field='input[name="ExpressaoPesquisa"]',
                submit_selector='input[type="submit"][name="botao"], input[type="submit"]',
            ),
        }),
        auth_failure_markers=("login ou senha incorretos", "acesso negado"),
    )
