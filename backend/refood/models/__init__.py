from .centri import Centro, AttoreCentro, CENTRO_TIPI
from .auth import Attore, TokenAutenticazione, RUOLI
from .lotti import Lotto, LogCambioStato, Categoria, LottoCategoria, STATI_LOTTO
from .prenotazioni import Prenotazione, Trasporto, STATI_PRENOTAZIONE, STATI_PRENOTAZIONE_ATTIVI, STATI_TRASPORTO
from .notifiche import Notifica
from .archivio import LottoArchivio, LogCambioStatoArchivio, PrenotazioneArchivio, StatisticheGiornaliere

__all__ = [
    'Centro', 'AttoreCentro', 'CENTRO_TIPI',
    'Attore', 'TokenAutenticazione', 'RUOLI',
    'Lotto', 'LogCambioStato', 'Categoria', 'LottoCategoria', 'STATI_LOTTO',
    'Prenotazione', 'Trasporto', 'STATI_PRENOTAZIONE', 'STATI_PRENOTAZIONE_ATTIVI', 'STATI_TRASPORTO',
    'Notifica',
    'LottoArchivio', 'LogCambioStatoArchivio', 'PrenotazioneArchivio', 'StatisticheGiornaliere',
]
