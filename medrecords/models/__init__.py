# medrecords/models/__init__.py
# Importing the package registers every table on Base.metadata.
from medrecords.models.base import Base
from medrecords.models.user import Profession, User
from medrecords.models.patient import PatientRecord, PatientStatus
from medrecords.models.profile import PatientMedicalData, PatientPersonalData
from medrecords.models.observation import PatientObservation
from medrecords.models.sharing import DoctorPatientSharing
from medrecords.models.diagnosis import PatientDiagnosis
