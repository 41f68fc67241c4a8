# export/hooks/dump_course_structures.py
"""
LMS management command, linked into edx-platform by the structures export step.

    ./manage.py lms --settings=production dump_course_structures

Writes one CSV row per course block to stdout:
    course_id,block_id,block_type,parent_id,display_name

Runs inside the LMS virtualenv only; nothing in the exporter imports it.
"""
from __future__ import annotations

import csv

from django.core.management.base import BaseCommand

HEADER = ["course_id", "block_id", "block_type", "parent_id", "display_name"]


class Command(BaseCommand):
    help = "Dump the block structure of every course as CSV on stdout."

    def add_arguments(self, parser):
        parser.add_argument("--course", action="append", default=[], help="Limit to these course keys")

    def handle(self, *args, **options):
        # edx-platform imports only resolve inside the LMS process
        from opaque_keys.edx.keys import CourseKey
        from xmodule.modulestore.django import modulestore

        store = modulestore()
        if options["course"]:
            course_keys = [CourseKey.from_string(k) for k in options["course"]]
        else:
            course_keys = sorted((c.id for c in store.get_course_summaries()), key=str)

        writer = csv.writer(self.stdout, lineterminator="\n")
        writer.writerow(HEADER)
        for course_key in course_keys:
            course = store.get_course(course_key, depth=None)
            if course is None:
                self.stderr.write(f"skipping missing course {course_key}")
                continue
            self._write_block(writer, course_key, course, parent=None)

    def _write_block(self, writer, course_key, block, parent):
        writer.writerow([
            str(course_key),
            str(block.location),
            block.location.block_type,
            str(parent.location) if parent is not None else "",
            getattr(block, "display_name", "") or "",
        ])
        for child in block.get_children():
            self._write_block(writer, course_key, child, parent=block)
