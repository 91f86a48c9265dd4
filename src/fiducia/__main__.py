from fiducia.manager import fiducia_manager

fiducia_manager(prog_name='fiducia')
