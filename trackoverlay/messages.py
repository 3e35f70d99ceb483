"""User-facing messages in the supported locales."""

import sys
from typing import List

from .config import DEFAULT_LOCALE

MESSAGES = {
    "en": {
        "processing_complete": "Processing completed successfully!",
        "error_occurred": "An error occurred:",
        "reading_video_metadata": "Reading video metadata:",
        "video_start_time": "Video start (UTC):",
        "sync_point_selected": "Selected track sync point (UTC):",
        "time_offset_calculated": "Calculated time offset (seconds):",
        "reading_track": "Reading track file:",
        "track_read_success": "Track file read successfully!",
        "sensor_data_found": "Sensor data found! Heart rate, cadence and speed will be shown.",
        "interpolating_points": "Interpolating track points...",
        "interpolation_complete": "Track point interpolation complete! Points added:",
        "points_in_window": "Track points inside the video window:",
        "generating_assets": "Generating overlay images...",
        "assets_generated": "Overlay images generated:",
        "generating_final_video": "Generating the final video...",
        "final_video_success": "Final video generated successfully!",
        "no_overlay_selected": "No overlay was selected. Copying the original video.",
        "no_track_match": "No track point matched the video's time. Copying the original video.",
        "job_cancelled": "Job cancelled before composition.",
        "cleaning_up": "Cleaning up temporary files...",
        "activity_totals": "Activity totals from the track file:",
        "frames_csv_failed": "Could not write the frame data CSV. Copying the original video:",
        "speed_unit": "KM/H",
        "altitude": "ALT",
        "distance": "Distance",
        "elevation_gain": "Elev. gain",
        "time": "Time",
        "heart_rate": "Heart rate",
        "cadence": "Cadence",
        "sensor_speed": "Speed",
        "calories": "Calories",
        "average_heart_rate": "Avg heart rate",
        "compass": "NSEW",
    },
    "pt": {
        "processing_complete": "Processamento concluído com sucesso!",
        "error_occurred": "Ocorreu um erro:",
        "reading_video_metadata": "A ler metadados do vídeo:",
        "video_start_time": "Início do vídeo (UTC):",
        "sync_point_selected": "Ponto de sincronização selecionado (UTC):",
        "time_offset_calculated": "Diferença de tempo calculada (segundos):",
        "reading_track": "A ler ficheiro de trilha:",
        "track_read_success": "Ficheiro de trilha lido com sucesso!",
        "sensor_data_found": "Dados de sensores encontrados! Frequência cardíaca, cadência e velocidade serão exibidas.",
        "interpolating_points": "A interpolar pontos da trilha...",
        "interpolation_complete": "Interpolação concluída! Pontos adicionados:",
        "points_in_window": "Pontos da trilha dentro do vídeo:",
        "generating_assets": "A gerar imagens dos overlays...",
        "assets_generated": "Imagens dos overlays geradas:",
        "generating_final_video": "A gerar o vídeo final...",
        "final_video_success": "Vídeo final gerado com sucesso!",
        "no_overlay_selected": "Nenhum overlay foi selecionado. A gerar cópia do vídeo original.",
        "no_track_match": "Nenhum ponto da trilha coincidiu com o tempo do vídeo. A gerar cópia do vídeo original.",
        "job_cancelled": "Processamento cancelado antes da composição.",
        "cleaning_up": "A limpar ficheiros temporários...",
        "activity_totals": "Totais da atividade no ficheiro de trilha:",
        "frames_csv_failed": "Não foi possível gravar o CSV dos dados. A gerar cópia do vídeo original:",
        "speed_unit": "KM/H",
        "altitude": "ALT",
        "distance": "Distância",
        "elevation_gain": "Ganho elev.",
        "time": "Hora",
        "heart_rate": "Freq. cardíaca",
        "cadence": "Cadência",
        "sensor_speed": "Velocidade",
        "calories": "Calorias",
        "average_heart_rate": "Freq. média",
        "compass": "NSLO",
    },
}


def t(key: str, lang: str = DEFAULT_LOCALE) -> str:
    """Translate a message key; unknown keys are returned unchanged."""
    table = MESSAGES.get(lang, MESSAGES[DEFAULT_LOCALE])
    return table.get(key, key)


class JobLog:
    """Collects a job's progress messages and echoes them to stderr."""

    def __init__(self, lang: str = DEFAULT_LOCALE, echo: bool = True) -> None:
        self.lang = lang
        self.echo = echo
        self.lines: List[str] = []

    def add(self, key: str, *details) -> str:
        parts = [t(key, self.lang)] + [str(d) for d in details]
        line = " ".join(parts)
        self.lines.append(line)
        if self.echo:
            print(line, file=sys.stderr)
        return line
