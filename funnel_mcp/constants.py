"""Shared constants used across the loader, filters and aggregators.

Single source of truth for column aliases. Source tables went through several
schema revisions, so each alias tuple lists the current name first and older
spellings after it. Supporting a new column spelling is a change here only.
"""

from __future__ import annotations

ID_KEYS: tuple[str, ...] = ("ID", "id", "Id")

DEALER_KEYS: tuple[str, ...] = (
    "NomeDealer",
    "Dealer",
    "dealer",
    "Concessionaria",
    "concessionaria",
    "Concessionária",
    "concessionária",
)

DATE_KEYS: tuple[str, ...] = ("dateSales", "DateSales", "Data", "data", "Date", "date")

FLAG_TEST_DRIVE_KEYS: tuple[str, ...] = (
    "Flag_TestDrive",
    "flag_testdrive",
    "flag_test_drive",
    "FlagTestDrive",
    "flagTestDrive",
)

FLAG_INVOICED_KEYS: tuple[str, ...] = (
    "Flag_Faturado",
    "flag_faturado",
    "faturado",
    "Faturado",
    "flagFaturado",
    "FlagFaturado",
)

DAYS_LEAD_TO_TEST_DRIVE_KEYS: tuple[str, ...] = (
    "Dias_Lead_TestDrive",
    "dias_lead_testdrive",
    "DiasLeadTestDrive",
)

DAYS_TEST_DRIVE_TO_INVOICE_KEYS: tuple[str, ...] = (
    "Dias_TestDrive_Faturamento",
    "dias_testdrive_faturamento",
    "DiasTestDriveFaturamento",
)

DAYS_LEAD_TO_INVOICE_KEYS: tuple[str, ...] = (
    "Dias_Lead_Faturamento",
    "dias_lead_faturamento",
    "DiasLeadFaturamento",
)

VISIT_COUNT_KEYS: tuple[str, ...] = ("Visitas", "visitas", "QtdVisitas", "qtd_visitas")

PERCENT_NEW_KEYS: tuple[str, ...] = ("PercNovos", "percNovos", "percentualNovos")
PERCENT_RETURNING_KEYS: tuple[str, ...] = ("PercAntigos", "percAntigos", "percentualAntigos")

SURVEY_EVENT_KEYS: tuple[str, ...] = ("SURVEY_EVENT_NAME", "survey_event_name")
SATISFACTION_KEYS: tuple[str, ...] = ("media_overall_satisfaction", "mediaOverallSatisfaction")
RESPONSE_COUNT_KEYS: tuple[str, ...] = ("qtd_respostas", "qtdRespostas")

SURVEY_CAR_HANDOVER = "Car Handover - New Car"
SURVEY_TEST_DRIVE = "Test Drive"

# Keys written onto rows enriched from the Lead set.
CORRELATED_DEALER_KEY = "Dealer"
CORRELATED_DATE_KEY = "dateSales"

NATIONAL_AVERAGE_LABEL = "Média BR"

DEFAULT_DECIDED_QUICKLY_DAYS = 10

# Spreadsheet serials count days from 1899-12-30; 25569 is 1970-01-01.
EXCEL_EPOCH_OFFSET_DAYS = 25569
MS_PER_DAY = 86_400_000
# Older loaders only treated numeric *strings* as serials above this value.
SERIAL_STRING_MIN = 30000

PT_MONTHS: dict[str, int] = {
    "jan": 1,
    "janeiro": 1,
    "fev": 2,
    "fevereiro": 2,
    "mar": 3,
    "marco": 3,
    "abr": 4,
    "abril": 4,
    "mai": 5,
    "maio": 5,
    "jun": 6,
    "junho": 6,
    "jul": 7,
    "julho": 7,
    "ago": 8,
    "agosto": 8,
    "set": 9,
    "setembro": 9,
    "out": 10,
    "outubro": 10,
    "nov": 11,
    "novembro": 11,
    "dez": 12,
    "dezembro": 12,
}
