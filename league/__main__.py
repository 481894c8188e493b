from league.main import run

run()
