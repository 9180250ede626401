from swarm_launcher.main import run

run()
