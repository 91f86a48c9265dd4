from fiducia.data import DataAccessManager, InMemoryDriver


class StateManager(DataAccessManager):
    ''' Holds the current state of the domain resources, keyed by identifier.
        Domains register their resource models on a subclass. '''

    __abstract__ = True
    __connector__ = InMemoryDriver
