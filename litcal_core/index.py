"""
Pydantic models for the ``/calendars`` metadata index.

The index lists every national and diocesan calendar the API can produce,
the diocesan groups and wider regions, and the supported locales.  It is
parsed once per API base URL and then shared read-only, so every model is
frozen and every collection is a tuple.
"""

from pydantic import BaseModel, ConfigDict, Field

_FROZEN = ConfigDict(frozen=True, extra="ignore")


class NationalCalendarSettings(BaseModel):
    """Default liturgical settings of a national calendar."""

    model_config = _FROZEN

    epiphany: str = Field(default="", description='e.g. "JAN6" or "SUNDAY_JAN2_JAN8".')
    ascension: str = Field(default="", description='"THURSDAY" or "SUNDAY".')
    corpus_christi: str = Field(default="", description='"THURSDAY" or "SUNDAY".')
    eternal_high_priest: bool = False
    holydays_of_obligation: dict[str, bool] = Field(default_factory=dict)


class NationalCalendar(BaseModel):
    """A national calendar, keyed by ISO 3166-1 alpha-2 code."""

    model_config = _FROZEN

    calendar_id: str
    locales: tuple[str, ...] = ()
    missals: tuple[str, ...] = ()
    settings: NationalCalendarSettings
    wider_region: str | None = None
    dioceses: tuple[str, ...] | None = None


class DiocesanCalendarSettings(BaseModel):
    """Overrides of the national defaults for one diocese."""

    model_config = _FROZEN

    epiphany: str | None = None
    ascension: str | None = None
    corpus_christi: str | None = None


class DiocesanCalendar(BaseModel):
    """A diocesan calendar belonging to a nation."""

    model_config = _FROZEN

    calendar_id: str
    diocese: str
    nation: str
    locales: tuple[str, ...] = ()
    timezone: str = ""
    group: str | None = None
    settings: DiocesanCalendarSettings | None = None


class DiocesanGroup(BaseModel):
    """A named group of dioceses sharing a calendar."""

    model_config = _FROZEN

    group_name: str
    dioceses: tuple[str, ...] = ()


class WiderRegion(BaseModel):
    """A region larger than a nation (e.g. Americas, Europe)."""

    model_config = _FROZEN

    name: str
    locales: tuple[str, ...] = ()
    api_path: str = ""


class CalendarIndex(BaseModel):
    """
    The complete ``litcal_metadata`` document.

    ``national_calendars``, ``diocesan_calendars`` and ``locales`` are
    required; the remaining collections default to empty.
    """

    model_config = _FROZEN

    national_calendars: tuple[NationalCalendar, ...]
    national_calendars_keys: tuple[str, ...] = ()
    diocesan_calendars: tuple[DiocesanCalendar, ...]
    diocesan_calendars_keys: tuple[str, ...] = ()
    diocesan_groups: tuple[DiocesanGroup, ...] = ()
    wider_regions: tuple[WiderRegion, ...] = ()
    wider_regions_keys: tuple[str, ...] = ()
    locales: tuple[str, ...]

    def national_calendar(self, calendar_id: str) -> NationalCalendar | None:
        """Return the national calendar with *calendar_id*, if any."""
        for calendar in self.national_calendars:
            if calendar.calendar_id == calendar_id:
                return calendar
        return None

    def diocesan_calendar(self, calendar_id: str) -> DiocesanCalendar | None:
        """Return the diocesan calendar with *calendar_id*, if any."""
        for calendar in self.diocesan_calendars:
            if calendar.calendar_id == calendar_id:
                return calendar
        return None

    def is_valid_diocese_for_nation(self, diocese_id: str, nation: str) -> bool:
        """
        Check that *diocese_id* is listed under the national calendar *nation*.

        Args:
            diocese_id: Diocesan calendar ID, e.g. ``"boston_us"``.
            nation: National calendar ID, e.g. ``"US"``.

        Returns:
            False when the nation is unknown or lists no dioceses.
        """
        national = self.national_calendar(nation)
        if national is None or national.dioceses is None:
            return False
        return diocese_id in national.dioceses
