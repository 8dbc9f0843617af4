from tado_collector.main import run

run()
