from fiducia.data import PClass, UUID_TYPE, UUID_GENR, field


class DomainEntityRecord(PClass):
    _id = field(type=UUID_TYPE, initial=UUID_GENR)
