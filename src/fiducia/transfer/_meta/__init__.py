from fiducia import setupModule

config, logger = setupModule(__name__)
