# rate_pipeline/config_banks.py
"""
Bank registry:
Static identity and disclosure locations for every bank the pipeline knows.
Used by the bank extractors and by run_pipeline.py to locate fixtures.
"""

from typing import Dict

from .models import BankId, BankIdentity, SourceType

BANK_NAMES: Dict[BankId, str] = {
    BankId.BANCOLOMBIA: "Bancolombia",
    BankId.BBVA: "BBVA Colombia",
    BankId.SCOTIABANK_COLPATRIA: "Scotiabank Colpatria",
    BankId.CAJA_SOCIAL: "Banco Caja Social",
    BankId.AVVILLAS: "Banco AV Villas",
    BankId.ITAU: "Itaú",
    BankId.FNA: "Fondo Nacional del Ahorro",
    BankId.BANCO_POPULAR: "Banco Popular",
    BankId.BANCO_DE_BOGOTA: "Banco de Bogotá",
    BankId.BANCO_DE_OCCIDENTE: "Banco de Occidente",
    BankId.DAVIVIENDA: "Davivienda",
    BankId.BANCO_AGRARIO: "Banco Agrario",
    BankId.BANCOOMEVA: "Bancoomeva",
}

# Banks whose rate disclosure has an extractor
BANKS: Dict[BankId, BankIdentity] = {
    BankId.DAVIVIENDA: BankIdentity(
        bank_id=BankId.DAVIVIENDA,
        name=BANK_NAMES[BankId.DAVIVIENDA],
        # Stable URL that always points to the latest rates PDF
        source_url="https://www.davivienda.com/documents/d/guest/tasas-tarifas-davivienda",
        document_label="Tasas y Tarifas Davivienda - Vivienda",
        min_expected_offers=8,
    ),
    BankId.BANCO_DE_BOGOTA: BankIdentity(
        bank_id=BankId.BANCO_DE_BOGOTA,
        name=BANK_NAMES[BankId.BANCO_DE_BOGOTA],
        # Rendered with the Spanish month name and year, see Fetcher.fetch_monthly
        source_url="https://www.bancodebogota.com/documents/d/guest/tasas-{month}-{year}",
        document_label="Tasas Banco de Bogotá - Vivienda",
        min_expected_offers=4,
    ),
    BankId.BANCO_AGRARIO: BankIdentity(
        bank_id=BankId.BANCO_AGRARIO,
        name=BANK_NAMES[BankId.BANCO_AGRARIO],
        # Landing page listing the weekly "tasas de colocación" PDF
        source_url="https://www.bancoagrario.gov.co/tasas-y-tarifas",
        home_url="https://www.bancoagrario.gov.co/",
        document_label="Tasas de Colocación - Banco Agrario",
        min_expected_offers=4,
    ),
    BankId.BANCO_DE_OCCIDENTE: BankIdentity(
        bank_id=BankId.BANCO_DE_OCCIDENTE,
        name=BANK_NAMES[BankId.BANCO_DE_OCCIDENTE],
        source_url=(
            "https://www.bancodeoccidente.com.co/banco-de-occidente/documentos/"
            "tasas-tarifas/para-personas/tasas/tasas-personas.pdf"
        ),
        # Visited first to obtain session cookies from the bot protection
        home_url="https://www.bancodeoccidente.com.co/",
        document_label="Tasas y Tarifas - Personas",
        min_expected_offers=2,
    ),
    BankId.BANCOOMEVA: BankIdentity(
        bank_id=BankId.BANCOOMEVA,
        name=BANK_NAMES[BankId.BANCOOMEVA],
        # Page linking to the monthly PDF; the file id changes every month
        source_url="https://www.bancoomeva.com.co/publicaciones/164289/tasas-de-credito/",
        home_url="https://www.bancoomeva.com.co/",
        document_label="Tasas de Crédito",
        min_expected_offers=4,
    ),
    BankId.FNA: BankIdentity(
        bank_id=BankId.FNA,
        name=BANK_NAMES[BankId.FNA],
        source_url="https://www.fna.gov.co/sobre-el-fna/tasas",
        document_label="Tasas FNA",
        source_type=SourceType.HTML,
        fixture_name="rates-page.html",
        min_expected_offers=4,
    ),
    BankId.ITAU: BankIdentity(
        bank_id=BankId.ITAU,
        name=BANK_NAMES[BankId.ITAU],
        # Direct PDF links answer 403 to automated clients; this is the landing page
        source_url="https://banco.itau.co/web/personas/informacion-de-interes/tasas-y-tarifas",
        document_label="Tasas vigentes persona natural",
        min_expected_offers=2,
    ),
}

# Fallback when the Banco Agrario landing page has no recognizable PDF link
BANCO_AGRARIO_FALLBACK_PDF_URL = (
    "https://www.bancoagrario.gov.co/system/files/2026-01/"
    "alcance_1_tasas_colocaciones_del_05_al_11_de_enero_2026_0.pdf"
)

# Bancoomeva PDF download endpoint, completed with the idFile found on the page
BANCOOMEVA_DOWNLOAD_URL = "https://www.bancoomeva.com.co/descargar.php?idFile={file_id}"

# Default fixture tree: <fixtures>/<bank_id>/<fixture_name>
DEFAULT_FIXTURES_DIR = "fixtures"
