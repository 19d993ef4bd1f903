# rate_pipeline/banks/registry.py

from __future__ import annotations
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Type, Union

from ..browser import BrowserSessionFetcher
from ..config_banks import BANKS
from ..fetcher import Fetcher
from ..models import BankId
from .banco_agrario import BancoAgrarioExtractor
from .banco_de_bogota import BancoDeBogotaExtractor
from .banco_de_occidente import BancoDeOccidenteExtractor
from .bancoomeva import BancoomevaExtractor
from .base import BankExtractor
from .davivienda import DaviviendaExtractor
from .fna import FnaExtractor
from .itau import ItauExtractor

# Iteration order is the merge order of the dataset
EXTRACTORS: Dict[BankId, Type[BankExtractor]] = {
    BankId.DAVIVIENDA: DaviviendaExtractor,
    BankId.BANCO_DE_BOGOTA: BancoDeBogotaExtractor,
    BankId.BANCO_AGRARIO: BancoAgrarioExtractor,
    BankId.BANCO_DE_OCCIDENTE: BancoDeOccidenteExtractor,
    BankId.BANCOOMEVA: BancoomevaExtractor,
    BankId.FNA: FnaExtractor,
    BankId.ITAU: ItauExtractor,
}


def fixture_path(fixtures_dir: Union[str, Path], bank_id: BankId) -> Path:
    return Path(fixtures_dir) / bank_id.value / BANKS[bank_id].fixture_name


def create_extractors(
    bank_ids: Optional[Iterable[BankId]] = None,
    fixtures_dir: Optional[Union[str, Path]] = None,
    fetcher: Optional[Fetcher] = None,
    session_fetcher: Optional[BrowserSessionFetcher] = None,
    deadline: Optional[float] = None,
) -> List[BankExtractor]:
    """
    One extractor per requested bank, in registry order.

    With fixtures_dir set, every extractor reads
    <fixtures_dir>/<bank_id>/<fixture_name> instead of the network.
    """
    wanted = set(bank_ids) if bank_ids is not None else set(EXTRACTORS)
    unknown = wanted - set(EXTRACTORS)
    if unknown:
        names = ", ".join(sorted(b.value for b in unknown))
        raise ValueError(f"No extractor registered for: {names}")

    fetcher = fetcher or Fetcher()
    extractors: List[BankExtractor] = []
    for bank_id, extractor_cls in EXTRACTORS.items():
        if bank_id not in wanted:
            continue
        extractors.append(
            extractor_cls(
                fetcher=fetcher,
                session_fetcher=session_fetcher,
                fixture_path=fixture_path(fixtures_dir, bank_id) if fixtures_dir else None,
                deadline=deadline,
            )
        )
    return extractors
