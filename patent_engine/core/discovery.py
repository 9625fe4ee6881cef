"""
Field Discoverer - resolves the interactive elements needed to log in and search.

Two tiers:
1. AI-assisted: a cleaned excerpt of the page's forms goes to the AI
   collaborator, whose answer is validated against the markup before use.
2. Heuristic: inputs and buttons are classified by attribute substrings,
   then anything still missing is filled from the last-known-good locators.

Discovery never raises for a missing field; the Interaction Driver decides
whether a gap is fatal.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from bs4 import BeautifulSoup, Tag

from patent_engine.core.collaborators import AICollaborator
from patent_engine.core.errors import CollaboratorUnavailable
from patent_engine.core.models import LocatorSet, PageKind, PageSnapshot

logger = logging.getLogger("patent_engine.discovery")


@dataclass(frozen=True)
class DiscoveryPatterns:
    """
    Attribute substrings used to classify form controls.

    Matching is case-insensitive against name, id, placeholder, aria-label,
    title and class of each control.
    """
    login: tuple[str, ...] = ("login", "usuario", "username", "user", "email", "cpf")
    password: tuple[str, ...] = ("senha", "password", "passwd", "pwd")
    query: tuple[str, ...] = (
        "query", "palavra", "expressao", "search", "busca", "pesquisa", "keyword", "term", "fpsearch",
    )
    submit: tuple[str, ...] = (
        "pesquisar", "buscar", "search", "submit", "entrar", "login", "continuar", "ok", "go",
    )


# Last-known-good locators, used when neither the AI nor the heuristics find a field.
DEFAULT_FALLBACK_LOCATORS: Mapping[PageKind, LocatorSet] = {
    PageKind.LOGIN: LocatorSet(
        login_field='input[name="T_Login"]',
        password_field='input[name="T_Senha"]',
        submit_selector='input[type="submit"]',
    ),
    PageKind.SEARCH: LocatorSet(
        query_field='input[name="ExpressaoPesquisa"]',
        submit_selector='input[type="submit"]',
    ),
}

REQUIRED_FIELDS: Mapping[PageKind, tuple[str, ...]] = {
    PageKind.LOGIN: ("login_field", "password_field", "submit_selector"),
    PageKind.SEARCH: ("query_field", "submit_selector"),
}

_IDENTIFIER = re.compile(r"^[A-Za-z_][\w\-]*$")
_TEXT_INPUT_TYPES = {"", "text", "search", "email", "tel"}


def to_selector(locator: str) -> str:
    """Turn a bare field name into a CSS selector; selectors pass through."""
    locator = locator.strip()
    if _IDENTIFIER.match(locator):
        return f'[name="{locator}"], #{locator}'
    return locator


def _css_string(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


class FieldDiscoverer:
    """
    Finds login, password, query and submit locators on a rendered page.
    """

    def __init__(
        self,
        ai: Optional[AICollaborator] = None,
        patterns: Optional[DiscoveryPatterns] = None,
        fallback_locators: Optional[Mapping[PageKind, LocatorSet]] = None,
        excerpt_chars: int = 6_000,
    ) -> None:
        """
        Args:
            ai: AI collaborator for the primary tier, None to skip it
            patterns: Attribute substrings for the heuristic tier
            fallback_locators: Per-source last-known-good locators; module
                defaults are used for any page kind they do not cover
            excerpt_chars: Upper bound on markup sent to the AI
        """
        self._ai = ai
        self._patterns = patterns or DiscoveryPatterns()
        self._fallbacks = dict(DEFAULT_FALLBACK_LOCATORS)
        if fallback_locators:
            self._fallbacks.update(fallback_locators)
        self._excerpt_chars = excerpt_chars

    async def discover(self, snapshot: PageSnapshot, page_kind: PageKind) -> LocatorSet:
        """Return best-effort locators for ``page_kind``."""
        soup = BeautifulSoup(snapshot.html or "", "html.parser")

        if self._ai is not None:
            try:
                locators = await self._discover_with_ai(soup, page_kind)
                logger.info(f"[Discovery] ✓ AI locators for {page_kind.value} page: {locators.to_dict()}")
                return locators
            except CollaboratorUnavailable as e:
                logger.warning(f"[Discovery] AI discovery rejected: {e.message}. Falling back to heuristics")

        heuristic = self.discover_heuristically(soup, page_kind)
        missing = heuristic.missing(REQUIRED_FIELDS[page_kind])
        if missing:
            logger.info(f"[Discovery] Heuristics missed {missing}; using last-known-good locators")
            heuristic = heuristic.merged_with(self._fallbacks.get(page_kind, LocatorSet()))
        logger.info(f"[Discovery] Locators for {page_kind.value} page: {heuristic.to_dict()}")
        return heuristic

    def build_excerpt(self, soup: BeautifulSoup) -> str:
        """Forms and loose controls only, stripped of scripts and styling."""
        fragments: list[str] = []
        for form in soup.find_all("form"):
            fragments.append(self._clean_markup(form))
        if not fragments:
            for control in soup.find_all(["input", "button", "select", "textarea"]):
                fragments.append(str(control))
        excerpt = "\n".join(fragments)
        return excerpt[: self._excerpt_chars]

    @staticmethod
    def _clean_markup(tag: Tag) -> str:
        copy = BeautifulSoup(str(tag), "html.parser")
        for junk in copy.find_all(["script", "style", "svg", "img", "noscript"]):
            junk.decompose()
        for element in copy.find_all(True):
            element.attrs = {
                key: value for key, value in element.attrs.items()
                if key in ("name", "id", "type", "value", "placeholder", "aria-label", "title", "class", "action")
            }
        return re.sub(r"\s+", " ", str(copy))

    async def _discover_with_ai(self, soup: BeautifulSoup, page_kind: PageKind) -> LocatorSet:
        excerpt = self.build_excerpt(soup)
        if not excerpt:
            raise CollaboratorUnavailable("page has no form controls to show the AI")

        prompt = f"""Identify the form controls on this {page_kind.value} page.

HTML:
{excerpt}

Return a JSON object with exactly these keys:
{{"loginField": ..., "passwordField": ..., "queryField": ..., "submitSelector": ...}}

Each value is the name attribute, id, or a CSS selector of the element, or null if the page has no such element."""

        answer = await self._ai.complete_json(prompt, max_tokens=300)
        return self._validate_ai_locators(answer, soup, page_kind)

    def _validate_ai_locators(self, answer: object, soup: BeautifulSoup, page_kind: PageKind) -> LocatorSet:
        keys = {
            "loginField": "login_field",
            "passwordField": "password_field",
            "queryField": "query_field",
            "submitSelector": "submit_selector",
        }
        if not isinstance(answer, dict):
            raise CollaboratorUnavailable("AI locator answer is not a JSON object")
        absent = [key for key in keys if key not in answer]
        if absent:
            raise CollaboratorUnavailable(f"AI locator answer lacks {absent}")

        resolved: dict[str, Optional[str]] = {}
        for key, field_name in keys.items():
            value = answer[key]
            if value is None or (isinstance(value, str) and not value.strip()):
                resolved[field_name] = None
                continue
            if not isinstance(value, str):
                raise CollaboratorUnavailable(f"AI locator {key} is not a string")
            selector = to_selector(value)
            if not self._resolves(soup, selector):
                raise CollaboratorUnavailable(f"AI locator {key}={value!r} matches nothing on the page")
            resolved[field_name] = selector

        locators = LocatorSet(**resolved)
        missing = locators.missing(REQUIRED_FIELDS[page_kind])
        if missing:
            raise CollaboratorUnavailable(f"AI left required fields empty: {missing}")
        return locators

    @staticmethod
    def _resolves(soup: BeautifulSoup, selector: str) -> bool:
        try:
            return soup.select_one(selector) is not None
        except Exception:
            return False

    def discover_heuristically(self, soup: BeautifulSoup, page_kind: PageKind) -> LocatorSet:
        """Classify controls by attribute substrings. Unfound fields stay None."""
        login_control: Optional[Tag] = None
        password_control: Optional[Tag] = None
        query_control: Optional[Tag] = None

        for control in soup.find_all(["input", "textarea"]):
            input_type = (control.get("type") or "").lower()
            haystack = self._attribute_text(control)

            if input_type == "password" or self._matches(haystack, self._patterns.password):
                if input_type in _TEXT_INPUT_TYPES | {"password"}:
                    password_control = password_control or control
                continue
            if input_type not in _TEXT_INPUT_TYPES:
                continue
            if login_control is None and self._matches(haystack, self._patterns.login):
                login_control = control
            elif query_control is None and self._matches(haystack, self._patterns.query):
                query_control = control

        if page_kind == PageKind.LOGIN:
            return LocatorSet(
                login_field=self._selector_or_none(login_control),
                password_field=self._selector_or_none(password_control),
                submit_selector=self._find_submit(soup, password_control or login_control),
            )

        if query_control is None:
            # A search page with a single free-text input needs no keyword match.
            candidates = [
                control for control in soup.find_all("input")
                if (control.get("type") or "").lower() in _TEXT_INPUT_TYPES
            ]
            if len(candidates) == 1:
                query_control = candidates[0]
        return LocatorSet(
            query_field=self._selector_or_none(query_control),
            submit_selector=self._find_submit(soup, query_control),
        )

    def _selector_or_none(self, control: Optional[Tag]) -> Optional[str]:
        return self._selector_for(control) if control is not None else None

    def _find_submit(self, soup: BeautifulSoup, field: Optional[Tag] = None) -> Optional[str]:
        """Submit control of the field's own form first, then anywhere on the page."""
        form = field.find_parent("form") if field is not None else None
        if form is not None:
            selector = self._find_submit_in(form)
            if selector:
                return selector
        return self._find_submit_in(soup)

    def _find_submit_in(self, scope: Tag) -> Optional[str]:
        controls = scope.find_all(["input", "button"])
        for control in controls:
            control_type = (control.get("type") or "").lower()
            if control.name == "input" and control_type in ("submit", "image"):
                return self._selector_for(control)
            if control.name == "button" and control_type == "submit":
                return self._selector_for(control)

        for control in controls:
            if control.name == "input" and (control.get("type") or "").lower() != "button":
                continue
            label = " ".join([control.get_text(" ", strip=True), self._attribute_text(control)]).lower()
            if self._matches(label, self._patterns.submit):
                return self._selector_for(control)

        # <button> without a type attribute submits its form.
        for control in controls:
            if control.name == "button" and not control.get("type"):
                return self._selector_for(control)
        return None

    @staticmethod
    def _attribute_text(control: Tag) -> str:
        parts: list[str] = []
        for attribute in ("name", "id", "placeholder", "aria-label", "title", "value", "class"):
            value = control.get(attribute)
            if isinstance(value, list):
                value = " ".join(value)
            if value:
                parts.append(str(value))
        return " ".join(parts).lower()

    @staticmethod
    def _matches(haystack: str, needles: Iterable[str]) -> bool:
        words = set(re.split(r"[^a-z0-9]+", haystack))
        for needle in needles:
            # Very short needles must match a whole word ("ok", "go").
            if len(needle) <= 3:
                if needle in words:
                    return True
            elif needle in haystack:
                return True
        return False

    @staticmethod
    def _selector_for(control: Tag) -> str:
        tag = control.name
        element_id = control.get("id")
        if element_id and _IDENTIFIER.match(element_id):
            return f"#{element_id}"
        name = control.get("name")
        if name:
            return f'{tag}[name="{_css_string(name)}"]'
        if element_id:
            return f'{tag}[id="{_css_string(element_id)}"]'
        control_type = control.get("type")
        if tag == "button":
            label = control.get_text(" ", strip=True)
            if label:
                return f'button:has-text("{_css_string(label)}")'
        if control.get("value"):
            return f'{tag}[value="{_css_string(control.get("value"))}"]'
        if control_type:
            return f'{tag}[type="{_css_string(control_type)}"]'
        return tag
