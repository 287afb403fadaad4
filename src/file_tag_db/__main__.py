from file_tag_db.cli import run

run()
