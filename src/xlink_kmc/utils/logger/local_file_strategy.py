from .log_storage_strategy import LogStorageStrategy
import os
from datetime import datetime

class LocalFileStrategy(LogStorageStrategy):
    """
    Appends kinetics log records to a local text file.
    """

    # INITIALIZE LOG STORAGE STRATEGY
    def __init__(self, file_location):
        """
        Args:
            file_location (str): Path of the log file. Relative paths are
                resolved against the current working directory.
        """
        self.file_location = self.resolve_file_path(file_location)
        self.initialize_log_file()

    # RESOLVE FILE PATH TO ABSOLUTE AND CREATE DIRECTORIES IF NEEDED
    def resolve_file_path(self, file_location):
        if not os.path.isabs(file_location):
            file_location = os.path.join(os.getcwd(), file_location)

        dir_name = os.path.dirname(file_location)
        if dir_name and not os.path.exists(dir_name):
            os.makedirs(dir_name)

        return file_location

    # START A FRESH LOG FILE FOR THIS RUN
    def initialize_log_file(self):
        with open(self.file_location, 'w') as log_file:
            log_file.write(f"LOG INITIALIZATION: {datetime.now()}\n")

    # STORE A LOG ENTRY IN THE FILE
    def store_log(self, message, priority, timestamp):
        """
        Appends one record as ``[timestamp] [PRIORITY] message``.
        """
        with open(self.file_location, 'a') as log_file:
            log_file.write(f"[{timestamp}] [{priority}] {message}\n")

    # CLEAR ALL LOG ENTRIES FROM THE FILE
    def flush_logs(self):
        with open(self.file_location, 'w') as log_file:
            log_file.write(f"LOG FLUSHED: {datetime.now()}\n")
