"""Reference tables for taxes, benefits, and market defaults."""

from __future__ import annotations

from typing import Final

DEFAULT_POLICY_YEAR: Final[int] = 2024

FILING_STATUSES: Final[set[str]] = {
    "single",
    "married_filing_jointly",
    "married_filing_separately",
    "head_of_household",
    "qualifying_surviving_spouse",
}

INFLATION_TYPES: Final[tuple[str, ...]] = ("none", "cpi", "medical", "housing", "education")

INFLATION_DEFAULTS: Final[dict[str, float]] = {
    "none": 0.0,
    "cpi": 0.02,
    "medical": 0.03,
    "housing": 0.025,
    "education": 0.03,
}

# (expected annual return, annual standard deviation)
HOLDING_TYPE_DEFAULTS: Final[dict[str, tuple[float, float]]] = {
    "bonds": (0.04, 0.06),
    "sp500": (0.10, 0.16),
    "nasdaq": (0.12, 0.22),
    "dow": (0.08, 0.14),
    "non_us_developed": (0.08, 0.17),
    "emerging_markets": (0.10, 0.22),
    "real_estate": (0.07, 0.15),
    "cash": (0.02, 0.01),
    "other": (0.05, 0.10),
}

CONTRIBUTION_LIMITS: Final[dict[int, dict[str, float]]] = {
    2024: {"401k": 23_000.0, "hsa": 4_150.0},
}

# Brackets are (upper_bound, marginal_rate). Upper bound None means infinity.
FEDERAL_BRACKETS: Final[dict[int, dict[str, list[tuple[float | None, float]]]]] = {
    2024: {
        "single": [
            (11_600.0, 0.10),
            (47_150.0, 0.12),
            (100_525.0, 0.22),
            (191_950.0, 0.24),
            (243_725.0, 0.32),
            (609_350.0, 0.35),
            (None, 0.37),
        ],
        "married_filing_jointly": [
            (23_200.0, 0.10),
            (94_300.0, 0.12),
            (201_050.0, 0.22),
            (383_900.0, 0.24),
            (487_450.0, 0.32),
            (731_200.0, 0.35),
            (None, 0.37),
        ],
        "married_filing_separately": [
            (11_600.0, 0.10),
            (47_150.0, 0.12),
            (100_525.0, 0.22),
            (191_950.0, 0.24),
            (243_725.0, 0.32),
            (365_600.0, 0.35),
            (None, 0.37),
        ],
        "head_of_household": [
            (16_550.0, 0.10),
            (63_100.0, 0.12),
            (100_500.0, 0.22),
            (191_950.0, 0.24),
            (243_700.0, 0.32),
            (609_350.0, 0.35),
            (None, 0.37),
        ],
    },
    2026: {
        "single": [
            (12_400.0, 0.10),
            (50_400.0, 0.12),
            (105_700.0, 0.22),
            (201_775.0, 0.24),
            (256_225.0, 0.32),
            (640_600.0, 0.35),
            (None, 0.37),
        ],
        "married_filing_jointly": [
            (24_800.0, 0.10),
            (100_800.0, 0.12),
            (211_400.0, 0.22),
            (403_550.0, 0.24),
            (512_450.0, 0.32),
            (768_700.0, 0.35),
            (None, 0.37),
        ],
        "married_filing_separately": [
            (12_400.0, 0.10),
            (50_400.0, 0.12),
            (105_700.0, 0.22),
            (201_775.0, 0.24),
            (256_225.0, 0.32),
            (384_350.0, 0.35),
            (None, 0.37),
        ],
        "head_of_household": [
            (17_700.0, 0.10),
            (67_450.0, 0.12),
            (105_700.0, 0.22),
            (201_750.0, 0.24),
            (256_200.0, 0.32),
            (640_600.0, 0.35),
            (None, 0.37),
        ],
    },
}

CAPITAL_GAINS_BRACKETS: Final[dict[int, dict[str, list[tuple[float | None, float]]]]] = {
    2024: {
        "single": [(47_025.0, 0.00), (518_900.0, 0.15), (None, 0.20)],
        "married_filing_jointly": [(94_050.0, 0.00), (583_750.0, 0.15), (None, 0.20)],
        "married_filing_separately": [(47_025.0, 0.00), (291_850.0, 0.15), (None, 0.20)],
        "head_of_household": [(63_000.0, 0.00), (551_350.0, 0.15), (None, 0.20)],
    },
    2026: {
        "single": [(50_800.0, 0.00), (557_000.0, 0.15), (None, 0.20)],
        "married_filing_jointly": [(101_600.0, 0.00), (626_350.0, 0.15), (None, 0.20)],
        "married_filing_separately": [(50_800.0, 0.00), (313_175.0, 0.15), (None, 0.20)],
        "head_of_household": [(68_050.0, 0.00), (595_350.0, 0.15), (None, 0.20)],
    },
}

STANDARD_DEDUCTIONS: Final[dict[int, dict[str, float]]] = {
    2024: {
        "single": 14_600.0,
        "married_filing_jointly": 29_200.0,
        "married_filing_separately": 14_600.0,
        "head_of_household": 21_900.0,
    },
    2026: {
        "single": 16_100.0,
        "married_filing_jointly": 32_200.0,
        "married_filing_separately": 16_100.0,
        "head_of_household": 24_150.0,
    },
}

NIIT_RATE: Final[float] = 0.038

NIIT_THRESHOLDS: Final[dict[str, float]] = {
    "single": 200_000.0,
    "married_filing_jointly": 250_000.0,
    "married_filing_separately": 125_000.0,
    "head_of_household": 200_000.0,
}

# (base amount, adjusted base amount) for the taxable-benefits worksheet.
SS_PROVISIONAL_INCOME_BRACKETS: Final[dict[str, tuple[float, float]]] = {
    "single": (25_000.0, 34_000.0),
    "married_filing_jointly": (32_000.0, 44_000.0),
    "married_filing_separately": (0.0, 0.0),
    "head_of_household": (25_000.0, 34_000.0),
}

# IRMAA tiers are (max_magi, (part_b_surcharge, part_d_surcharge)) per month.
IRMAA_BRACKETS: Final[dict[int, dict[str, list[tuple[float | None, tuple[float, float]]]]]] = {
    2024: {
        "single": [
            (103_000.0, (0.0, 0.0)),
            (129_000.0, (69.9, 12.9)),
            (161_000.0, (174.7, 33.3)),
            (193_000.0, (279.5, 53.8)),
            (500_000.0, (384.3, 74.2)),
            (None, (419.3, 81.0)),
        ],
        "married_filing_jointly": [
            (206_000.0, (0.0, 0.0)),
            (258_000.0, (69.9, 12.9)),
            (322_000.0, (174.7, 33.3)),
            (386_000.0, (279.5, 53.8)),
            (750_000.0, (384.3, 74.2)),
            (None, (419.3, 81.0)),
        ],
        "married_filing_separately": [
            (103_000.0, (0.0, 0.0)),
            (397_000.0, (384.3, 74.2)),
            (None, (419.3, 81.0)),
        ],
        "head_of_household": [
            (103_000.0, (0.0, 0.0)),
            (129_000.0, (69.9, 12.9)),
            (161_000.0, (174.7, 33.3)),
            (193_000.0, (279.5, 53.8)),
            (500_000.0, (384.3, 74.2)),
            (None, (419.3, 81.0)),
        ],
    },
    2026: {
        "single": [
            (106_000.0, (0.0, 0.0)),
            (133_000.0, (74.0, 13.0)),
            (167_000.0, (185.0, 33.0)),
            (200_000.0, (296.0, 52.0)),
            (500_000.0, (407.0, 71.0)),
            (None, (444.0, 82.0)),
        ],
        "married_filing_jointly": [
            (212_000.0, (0.0, 0.0)),
            (266_000.0, (74.0, 13.0)),
            (334_000.0, (185.0, 33.0)),
            (400_000.0, (296.0, 52.0)),
            (750_000.0, (407.0, 71.0)),
            (None, (444.0, 82.0)),
        ],
        "married_filing_separately": [
            (106_000.0, (0.0, 0.0)),
            (133_000.0, (407.0, 71.0)),
            (None, (444.0, 82.0)),
        ],
        "head_of_household": [
            (106_000.0, (0.0, 0.0)),
            (133_000.0, (74.0, 13.0)),
            (167_000.0, (185.0, 33.0)),
            (200_000.0, (296.0, 52.0)),
            (500_000.0, (407.0, 71.0)),
            (None, (444.0, 82.0)),
        ],
    },
}

IRMAA_LOOKBACK_YEARS: Final[int] = 2

PAYROLL_TAX: Final[dict[int, dict[str, float]]] = {
    2024: {
        "social_security_rate": 0.062,
        "social_security_wage_base": 168_600.0,
        "medicare_rate": 0.0145,
        "additional_medicare_rate": 0.009,
    },
    2026: {
        "social_security_rate": 0.062,
        "social_security_wage_base": 184_500.0,
        "medicare_rate": 0.0145,
        "additional_medicare_rate": 0.009,
    },
}

ADDITIONAL_MEDICARE_THRESHOLDS: Final[dict[str, float]] = {
    "single": 200_000.0,
    "married_filing_jointly": 250_000.0,
    "married_filing_separately": 125_000.0,
    "head_of_household": 200_000.0,
}

STATE_BASE_RATES: Final[dict[str, float]] = {
    "AL": 0.0500, "AK": 0.0000, "AZ": 0.0250, "AR": 0.0390, "CA": 0.0930,
    "CO": 0.0440, "CT": 0.0500, "DE": 0.0520, "FL": 0.0000, "GA": 0.0530,
    "HI": 0.0800, "ID": 0.0580, "IL": 0.0495, "IN": 0.0300, "IA": 0.0570,
    "KS": 0.0520, "KY": 0.0450, "LA": 0.0300, "ME": 0.0710, "MD": 0.0575,
    "MA": 0.0500, "MI": 0.0425, "MN": 0.0680, "MS": 0.0470, "MO": 0.0470,
    "MT": 0.0590, "NE": 0.0560, "NV": 0.0000, "NH": 0.0000, "NJ": 0.0630,
    "NM": 0.0490, "NY": 0.0650, "NC": 0.0475, "ND": 0.0250, "OH": 0.0350,
    "OK": 0.0475, "OR": 0.0870, "PA": 0.0307, "RI": 0.0550, "SC": 0.0640,
    "SD": 0.0000, "TN": 0.0000, "TX": 0.0000, "UT": 0.0480, "VT": 0.0660,
    "VA": 0.0575, "WA": 0.0000, "WV": 0.0510, "WI": 0.0530, "WY": 0.0000,
    "DC": 0.0850,
}

# Progressive schedules for states where the flat approximation is too coarse.
# Keyed by "single" and "married_filing_jointly"; other statuses map onto these.
STATE_PROGRESSIVE_BRACKETS: Final[dict[str, dict[str, list[tuple[float | None, float]]]]] = {
    "CA": {
        "single": [
            (10_756.0, 0.01),
            (25_499.0, 0.02),
            (40_245.0, 0.04),
            (55_866.0, 0.06),
            (70_606.0, 0.08),
            (360_659.0, 0.093),
            (None, 0.103),
        ],
        "married_filing_jointly": [
            (21_512.0, 0.01),
            (50_998.0, 0.02),
            (80_490.0, 0.04),
            (111_732.0, 0.06),
            (141_212.0, 0.08),
            (721_318.0, 0.093),
            (None, 0.103),
        ],
    },
    "NJ": {
        "single": [
            (20_000.0, 0.014),
            (35_000.0, 0.0175),
            (40_000.0, 0.035),
            (75_000.0, 0.05525),
            (500_000.0, 0.0637),
            (1_000_000.0, 0.0897),
            (None, 0.1075),
        ],
        "married_filing_jointly": [
            (20_000.0, 0.014),
            (50_000.0, 0.0175),
            (70_000.0, 0.0245),
            (80_000.0, 0.035),
            (150_000.0, 0.05525),
            (500_000.0, 0.0637),
            (1_000_000.0, 0.0897),
            (None, 0.1075),
        ],
    },
    "OK": {
        "single": [
            (1_000.0, 0.0025),
            (2_500.0, 0.0075),
            (3_750.0, 0.0175),
            (4_900.0, 0.0275),
            (7_200.0, 0.0375),
            (None, 0.0475),
        ],
        "married_filing_jointly": [
            (2_000.0, 0.0025),
            (5_000.0, 0.0075),
            (7_500.0, 0.0175),
            (9_800.0, 0.0275),
            (14_400.0, 0.0375),
            (None, 0.0475),
        ],
    },
}

UNIFORM_LIFETIME_DIVISORS: Final[dict[int, float]] = {
    73: 26.5, 74: 25.5, 75: 24.6, 76: 23.7, 77: 22.9, 78: 22.0, 79: 21.1,
    80: 20.2, 81: 19.4, 82: 18.5, 83: 17.7, 84: 16.8, 85: 16.0, 86: 15.2,
    87: 14.4, 88: 13.7, 89: 12.9, 90: 12.2, 91: 11.5, 92: 10.8, 93: 10.1,
    94: 9.5, 95: 8.9, 96: 8.4, 97: 7.8, 98: 7.3, 99: 6.8, 100: 6.4,
    101: 6.0, 102: 5.6, 103: 5.2, 104: 4.9, 105: 4.6, 106: 4.3, 107: 4.1,
    108: 3.9, 109: 3.7, 110: 3.5, 111: 3.4, 112: 3.3, 113: 3.1, 114: 3.0,
    115: 2.9, 116: 2.8, 117: 2.7, 118: 2.5, 119: 2.3, 120: 2.0,
}

SSA_WAGE_INDEX: Final[dict[int, float]] = {
    1951: 2799.16, 1952: 2973.32, 1953: 3139.44, 1954: 3155.64, 1955: 3301.44,
    1956: 3532.36, 1957: 3641.72, 1958: 3673.80, 1959: 3855.80, 1960: 4007.12,
    1961: 4086.76, 1962: 4291.40, 1963: 4396.64, 1964: 4576.32, 1965: 4658.72,
    1966: 4938.36, 1967: 5213.44, 1968: 5571.76, 1969: 5893.76, 1970: 6186.24,
    1971: 6497.08, 1972: 7133.80, 1973: 7580.16, 1974: 8030.76, 1975: 8630.92,
    1976: 9226.48, 1977: 9779.44, 1978: 10556.03, 1979: 11479.46, 1980: 12513.46,
    1981: 13773.10, 1982: 14531.34, 1983: 15239.24, 1984: 16135.07, 1985: 16822.51,
    1986: 17321.82, 1987: 18426.51, 1988: 19334.04, 1989: 20099.55, 1990: 21027.98,
    1991: 21811.60, 1992: 22935.42, 1993: 23132.67, 1994: 23753.53, 1995: 24705.66,
    1996: 25913.90, 1997: 27426.00, 1998: 28861.44, 1999: 30469.84, 2000: 32154.82,
    2001: 32921.92, 2002: 33252.09, 2003: 34064.95, 2004: 35648.55, 2005: 36952.94,
    2006: 38651.41, 2007: 40405.48, 2008: 41334.97, 2009: 40711.61, 2010: 41673.83,
    2011: 42979.61, 2012: 44321.67, 2013: 44888.16, 2014: 46481.52, 2015: 48098.63,
    2016: 48642.15, 2017: 50321.89, 2018: 52145.80, 2019: 54099.99, 2020: 55628.60,
    2021: 60575.07, 2022: 63795.13, 2023: 66621.80, 2024: 69846.57,
}

# Monthly AIME bend points keyed by eligibility year.
SSA_BEND_POINTS: Final[dict[int, tuple[float, float]]] = {
    2026: (1_286.0, 7_749.0),
}

# (birth_year_start, birth_year_end, normal_retirement_age_months, delayed_credit_per_year)
SSA_RETIREMENT_ADJUSTMENTS: Final[list[tuple[int, int, int, float]]] = [
    (1917, 1918, 65 * 12, 0.015),
    (1919, 1920, 65 * 12, 0.02),
    (1921, 1922, 65 * 12, 0.025),
    (1923, 1924, 65 * 12, 0.03),
    (1925, 1926, 65 * 12, 0.035),
    (1927, 1928, 65 * 12, 0.04),
    (1929, 1930, 65 * 12, 0.045),
    (1931, 1932, 65 * 12, 0.05),
    (1933, 1934, 65 * 12, 0.055),
    (1935, 1936, 65 * 12, 0.06),
    (1937, 1937, 65 * 12, 0.065),
    (1938, 1938, 65 * 12 + 2, 0.065),
    (1939, 1939, 65 * 12 + 4, 0.07),
    (1940, 1940, 65 * 12 + 6, 0.07),
    (1941, 1941, 65 * 12 + 8, 0.075),
    (1942, 1942, 65 * 12 + 10, 0.075),
    (1943, 1954, 66 * 12, 0.08),
    (1955, 1955, 66 * 12 + 2, 0.08),
    (1956, 1956, 66 * 12 + 4, 0.08),
    (1957, 1957, 66 * 12 + 6, 0.08),
    (1958, 1958, 66 * 12 + 8, 0.08),
    (1959, 1959, 66 * 12 + 10, 0.08),
    (1960, 9999, 67 * 12, 0.08),
]

FUNERAL_COSTS: Final[dict[str, float]] = {
    "funeral": 10_000.0,
    "burial": 8_000.0,
    "cremation": 4_000.0,
}

INHERITANCE_ASSET_TAGS: Final[tuple[str, ...]] = ("cash", "taxable", "traditional", "roth", "hsa", "real_estate")

BENEFICIARY_RELATIONSHIPS: Final[tuple[str, ...]] = (
    "spouse",
    "civil_union_partner",
    "domestic_partner",
    "child",
    "stepchild",
    "grandchild",
    "parent",
    "grandparent",
    "sibling",
    "in_law",
    "niece_nephew",
    "cousin",
    "friend",
    "unrelated",
    "charity",
    "religious_institution",
    "educational_institution",
    "government_entity",
)

# State inheritance tax, keyed by state and policy year. Each class lists the
# relationships it covers, its exemption and brackets over the exempt amount.
# Only assets carrying an included tag and no excluded tag are taxable.
INHERITANCE_TAX_POLICIES: Final[dict[str, dict[int, dict]]] = {
    "NJ": {
        2024: {
            "include_tags": ("cash", "taxable", "real_estate"),
            "exclude_tags": ("traditional", "roth", "hsa"),
            "classes": {
                "A": {
                    "relationships": (
                        "spouse",
                        "civil_union_partner",
                        "domestic_partner",
                        "child",
                        "stepchild",
                        "grandchild",
                        "parent",
                        "grandparent",
                    ),
                    "exemption": 0.0,
                    "brackets": [(None, 0.0)],
                },
                "C": {
                    "relationships": ("sibling", "in_law"),
                    "exemption": 25_000.0,
                    "brackets": [(1_075_000.0, 0.11), (None, 0.16)],
                },
                "D": {
                    "relationships": ("niece_nephew", "cousin", "friend", "unrelated"),
                    "exemption": 0.0,
                    "brackets": [(1_075_000.0, 0.15), (None, 0.16)],
                },
                "E": {
                    "relationships": ("charity", "religious_institution", "educational_institution", "government_entity"),
                    "exemption": 0.0,
                    "brackets": [(None, 0.0)],
                },
            },
        },
    },
}

EARLY_WITHDRAWAL_AGE: Final[float] = 59.5
QCD_AGE: Final[float] = 70.5
MEDICARE_AGE: Final[float] = 65.0
ROTH_CONVERSION_SEASONING_MONTHS: Final[int] = 60
