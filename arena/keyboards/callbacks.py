"""
Centralized CallbackData factories.
Telegram limits callback_data to 64 bytes; all prefixes are kept short.
"""
from aiogram.filters.callback_data import CallbackData


class MainMenuCb(CallbackData, prefix="mm"):
    action: str           # main | tournaments | my_registrations | wallet | deposit


class TournamentCb(CallbackData, prefix="trn"):
    action: str           # view | register
    tid: int = 0          # tournament id


class RegFlowCb(CallbackData, prefix="reg"):
    action: str           # next | back | method | team | players | terms | submit | cancel | reset
    value: str = ""


class DepositCb(CallbackData, prefix="dep"):
    action: str           # method | skip | submit | cancel | status
    value: str = ""
    did: int = 0          # deposit id


class AdminPanelCb(CallbackData, prefix="adm"):
    action: str           # deposits | main


class AdminDepositCb(CallbackData, prefix="adep"):
    action: str           # view | approve | reject | list
    did: int = 0
