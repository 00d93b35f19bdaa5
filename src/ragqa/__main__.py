from ragqa.main import run

run()
