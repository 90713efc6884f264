"""
Countries a payee account can be opened in.

ISO 3166-1 alpha-2 codes. The processor fixes an account's country at
creation time, so this set is the gate for onboarding and the key space for
every other lookup table in this package.
"""

from typing import Optional

# ─── SEPA zone ─────────────────────────────────────────────────────────
# Countries whose banks accept SEPA Direct Debit. Includes the non-euro EU
# members (CZ, DK, HU, PL, RO, SE) which settle SEPA in EUR.
SEPA_COUNTRIES: frozenset[str] = frozenset({
    "AT", "BE", "BG", "HR", "CY", "CZ", "DK", "EE", "FI", "FR", "DE", "GR",
    "HU", "IE", "IT", "LV", "LT", "LU", "MT", "NL", "PL", "PT", "RO", "SK",
    "SI", "ES", "SE",
})

SUPPORTED_COUNTRIES: frozenset[str] = SEPA_COUNTRIES | frozenset({
    # North America
    "US", "CA", "MX", "PR",
    # Rest of Europe
    "GB", "CH", "NO", "IS", "LI",
    # Asia-Pacific
    "AU", "NZ", "JP", "SG", "HK", "MY", "TH", "IN", "PH",
    # Latin America
    "BR", "AR",
    # Middle East & Africa
    "AE", "SA", "EG", "TR", "NG", "KE", "ZA",
})

COUNTRY_NAMES: dict[str, str] = {
    "US": "United States", "CA": "Canada", "GB": "United Kingdom", "AU": "Australia",
    "AT": "Austria", "BE": "Belgium", "BG": "Bulgaria", "HR": "Croatia",
    "CY": "Cyprus", "CZ": "Czech Republic", "DK": "Denmark", "EE": "Estonia",
    "FI": "Finland", "FR": "France", "DE": "Germany", "GR": "Greece",
    "HU": "Hungary", "IE": "Ireland", "IT": "Italy", "LV": "Latvia",
    "LT": "Lithuania", "LU": "Luxembourg", "MT": "Malta", "NL": "Netherlands",
    "PL": "Poland", "PT": "Portugal", "RO": "Romania", "SK": "Slovakia",
    "SI": "Slovenia", "ES": "Spain", "SE": "Sweden", "CH": "Switzerland",
    "NO": "Norway", "IS": "Iceland", "LI": "Liechtenstein", "JP": "Japan",
    "SG": "Singapore", "HK": "Hong Kong", "NZ": "New Zealand", "MY": "Malaysia",
    "TH": "Thailand", "MX": "Mexico", "BR": "Brazil", "IN": "India",
    "AE": "United Arab Emirates", "PR": "Puerto Rico", "PH": "Philippines",
    "SA": "Saudi Arabia", "EG": "Egypt", "TR": "Turkey", "AR": "Argentina",
    "NG": "Nigeria", "KE": "Kenya", "ZA": "South Africa",
}


def normalize_country(country_code: Optional[str]) -> str:
    """Upper-case and strip a country code. None becomes ''."""
    return (country_code or "").strip().upper()


def is_supported_country(country_code: Optional[str]) -> bool:
    return normalize_country(country_code) in SUPPORTED_COUNTRIES
