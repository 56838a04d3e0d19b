# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Predefined country groups for nationality badge requirements.

Community creators can require a whole region instead of listing each
nationality. Groups expand into plain nationality codes before a
``BadgeClause`` is built, so policies and canonical keys never refer to
a group by name.
"""

from dataclasses import dataclass

from badgegate.badges.country_codes import normalize_nationality_code
from badgegate.badges.exceptions import InvalidPolicyError


@dataclass(frozen=True)
class CountryGroup:
    """A named set of nationality codes."""

    key: str
    name: str
    countries: tuple[str, ...]


COUNTRY_GROUPS: dict[str, CountryGroup] = {
    group.key: group
    for group in (
        CountryGroup(
            "EU",
            "European Union",
            ("AUT", "BEL", "BGR", "HRV", "CYP", "CZE", "DNK", "EST", "FIN", "FRA", "DEU", "GRC", "HUN",
             "IRL", "ITA", "LVA", "LTU", "LUX", "MLT", "NLD", "POL", "PRT", "ROU", "SVK", "SVN", "ESP", "SWE"),
        ),
        CountryGroup("NORDIC", "Nordic Countries", ("DNK", "FIN", "ISL", "NOR", "SWE")),
        CountryGroup("NORTH_AMERICA", "North America", ("USA", "CAN", "MEX")),
        CountryGroup(
            "LATIN_AMERICA",
            "Latin America",
            ("ARG", "BOL", "BRA", "CHL", "COL", "CRI", "CUB", "DOM", "ECU", "SLV", "GTM", "HND", "MEX",
             "NIC", "PAN", "PRY", "PER", "URY", "VEN"),
        ),
        CountryGroup(
            "ASIA_PACIFIC",
            "Asia Pacific",
            ("AUS", "BGD", "CHN", "HKG", "IND", "IDN", "JPN", "KOR", "MYS", "NZL", "PAK", "PHL", "SGP",
             "LKA", "TWN", "THA", "VNM"),
        ),
        CountryGroup(
            "MIDDLE_EAST",
            "Middle East",
            ("BHR", "EGY", "IRN", "IRQ", "ISR", "JOR", "KWT", "LBN", "OMN", "PSE", "QAT", "SAU", "SYR",
             "TUR", "ARE", "YEM"),
        ),
        CountryGroup(
            "AFRICA",
            "Africa",
            ("DZA", "AGO", "BEN", "BWA", "BFA", "BDI", "CMR", "CPV", "CAF", "TCD", "COM", "COG", "COD",
             "CIV", "DJI", "EGY", "GNQ", "ERI", "ETH", "GAB", "GMB", "GHA", "GIN", "GNB", "KEN", "LSO",
             "LBR", "LBY", "MDG", "MWI", "MLI", "MRT", "MUS", "MAR", "MOZ", "NAM", "NER", "NGA", "RWA",
             "STP", "SEN", "SYC", "SLE", "SOM", "ZAF", "SSD", "SDN", "SWZ", "TZA", "TGO", "TUN", "UGA",
             "ZMB", "ZWE"),
        ),
        CountryGroup("G7", "G7 Countries", ("CAN", "FRA", "DEU", "ITA", "JPN", "GBR", "USA")),
        CountryGroup(
            "G20",
            "G20 Countries",
            ("ARG", "AUS", "BRA", "CAN", "CHN", "FRA", "DEU", "IND", "IDN", "ITA", "JPN", "MEX", "RUS",
             "SAU", "ZAF", "KOR", "TUR", "GBR", "USA"),
        ),
        CountryGroup("ASEAN", "ASEAN", ("BRN", "KHM", "IDN", "LAO", "MYS", "MMR", "PHL", "SGP", "THA", "VNM")),
        CountryGroup(
            "CARIBBEAN",
            "Caribbean",
            ("ATG", "BHS", "BRB", "BLZ", "CUB", "DMA", "DOM", "GRD", "HTI", "JAM", "KNA", "LCA", "VCT", "TTO"),
        ),
        CountryGroup("SOUTH_ASIA", "South Asia", ("AFG", "BGD", "BTN", "IND", "MDV", "NPL", "PAK", "LKA")),
        CountryGroup("CENTRAL_ASIA", "Central Asia", ("KAZ", "KGZ", "TJK", "TKM", "UZB")),
        CountryGroup(
            "BALKANS",
            "Balkans",
            ("ALB", "BIH", "BGR", "HRV", "GRC", "XKX", "MKD", "MNE", "ROU", "SRB", "SVN"),
        ),
        CountryGroup(
            "ENGLISH_SPEAKING",
            "English-Speaking Countries",
            ("AUS", "CAN", "IRL", "NZL", "GBR", "USA", "ZAF", "IND", "PHL", "SGP", "JAM"),
        ),
        CountryGroup(
            "SPANISH_SPEAKING",
            "Spanish-Speaking Countries",
            ("ARG", "BOL", "CHL", "COL", "CRI", "CUB", "DOM", "ECU", "SLV", "GNQ", "GTM", "HND", "MEX",
             "NIC", "PAN", "PRY", "PER", "ESP", "URY", "VEN"),
        ),
        CountryGroup(
            "FRENCH_SPEAKING",
            "French-Speaking Countries",
            ("BEL", "BEN", "BFA", "BDI", "CMR", "CAF", "TCD", "COM", "COG", "COD", "CIV", "DJI", "FRA",
             "GAB", "GIN", "LUX", "MLI", "MCO", "NER", "RWA", "SEN", "SYC", "CHE", "TGO"),
        ),
    )
}


def countries_for_group(key: str) -> tuple[str, ...]:
    """Return the normalized, sorted nationality codes of a country group.

    Args:
        key: Group key, case-insensitive (e.g. "EU", "nordic")

    Raises:
        InvalidPolicyError: If the group key is unknown
    """
    group = COUNTRY_GROUPS.get(key.strip().upper())
    if group is None:
        raise InvalidPolicyError.unknown_country_group(key)
    return tuple(sorted({normalize_nationality_code(code) for code in group.countries}))
